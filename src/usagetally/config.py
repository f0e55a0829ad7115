import os
from dataclasses import dataclass
from pathlib import Path

OUTPUT_FORMATS: "tuple[str, ...]" = ("table", "json", "csv", "prometheus")

OPENAI_KEY_ENV_VARS: "tuple[str, ...]" = (
    "USAGETALLY_OPENAI_KEY",
    "OPENAI_API_KEY",
    "OPENAI_KEY",
)
GITHUB_TOKEN_ENV_VARS: "tuple[str, ...]" = (
    "USAGETALLY_GITHUB_TOKEN",
    "GITHUB_TOKEN",
    "GH_TOKEN",
)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _first_env(names: "tuple[str, ...]") -> "str":
    for name in names:
        value = os.environ.get(name, "")
        if value:
            return value
    return ""


def _env_float(name: "str", default: "float") -> "float":
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None


@dataclass
class Config:
    # None means every provider
    tool: "str | None" = None
    output_format: "str" = "table"
    verbose: "bool" = False
    log_level: "str" = "warning"
    # per-provider timeout in seconds, 0 disables it
    timeout: "float" = DEFAULT_TIMEOUT_SECONDS
    # root used to resolve each tool's default data location
    home: "Path | None" = None

    openai_api_key: "str" = ""
    github_token: "str" = ""

    @classmethod
    def from_env(cls) -> "Config":
        home = os.environ.get("USAGETALLY_HOME", "")
        return cls(
            timeout=_env_float("USAGETALLY_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            home=Path(home).expanduser() if home else None,
            openai_api_key=_first_env(OPENAI_KEY_ENV_VARS),
            github_token=_first_env(GITHUB_TOKEN_ENV_VARS),
        )

    @property
    def timeout_seconds(self) -> "float | None":
        return self.timeout if self.timeout > 0 else None
