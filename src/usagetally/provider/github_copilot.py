import asyncio
from pathlib import Path

import httpx
import structlog

from usagetally.models import ProviderResult, TimeRange, UsageStats
from usagetally.provider.decoding import coerce_count
from usagetally.provider.files import read_json

logger = structlog.get_logger()

COPILOT_USER_URL = "https://api.github.com/copilot_internal/user"


def hosts_token(hosts_file: "Path") -> "str":
    """
    reads the OAuth token the Copilot editor plugins store in
    hosts.json, or "" when there is none.
    """
    hosts = read_json(hosts_file) if hosts_file.is_file() else None
    if not isinstance(hosts, dict):
        return ""
    host = hosts.get("github.com")
    if not isinstance(host, dict):
        return ""
    token = host.get("oauth_token")
    return token if isinstance(token, str) else ""


class GitHubCopilotProvider:
    """
    GitHubCopilotProvider asks the Copilot user API for the current
    plan's usage. The API exposes an interaction count but no token
    counts, so only request counts are reported.
    """

    def __init__(
        self,
        hosts_file: "Path",
        token: "str" = "",
        logs_dir: "Path | None" = None,
        timeout: "float" = 10.0,
    ) -> "None":
        self._hosts_file = hosts_file
        self._token = token
        self._logs_dir = logs_dir
        self._timeout = timeout

    @property
    def name(self) -> "str":
        return "github-copilot"

    @property
    def display_name(self) -> "str":
        return "GitHub Copilot"

    async def _resolve_token(self) -> "str":
        if self._token:
            return self._token
        return await asyncio.to_thread(hosts_token, self._hosts_file)

    async def is_available(self) -> "bool":
        return bool(await self._resolve_token())

    def paths_to_check(self) -> "list[str]":
        paths = ["GITHUB_TOKEN environment variable", str(self._hosts_file)]
        if self._logs_dir is not None:
            paths.append(str(self._logs_dir))
        return paths

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        token = await self._resolve_token()
        if not token:
            return ProviderResult.no_key(self.name, self.display_name)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(
                    COPILOT_USER_URL,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                        "User-Agent": "usagetally",
                    },
                )
            if resp.status_code in (401, 403):
                return ProviderResult.auth_required(self.name, self.display_name)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("copilot_user_fetch_failed", error=str(exc))
            return ProviderResult.error_result(
                self.name,
                self.display_name,
                f"GitHub Copilot API request failed: {exc}",
            )

        if not isinstance(data, dict):
            return ProviderResult.error_result(
                self.name,
                self.display_name,
                "GitHub Copilot API returned an unexpected response",
            )

        stats = UsageStats()
        if "limited_user_usage" in data:
            interactions = coerce_count(data["limited_user_usage"])
            # a plan-period counter, it has no per-request timestamps
            stats.this_month.request_count = interactions
            stats.total.request_count = interactions
        else:
            # paid plans are not metered and the API omits the counter
            logger.info("copilot_usage_unmetered", plan=data.get("copilot_plan"))

        return ProviderResult.active(self.name, self.display_name, stats, "GitHub API")
