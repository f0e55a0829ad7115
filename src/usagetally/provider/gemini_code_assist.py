import asyncio
from pathlib import Path

from usagetally.models import ProviderResult, TimeRange

GOOGLE_CLOUD_CONSOLE_URL = "https://console.cloud.google.com/"


def _has_entries(directory: "Path") -> "bool":
    try:
        return any(directory.iterdir())
    except OSError:
        return False


class GeminiCodeAssistProvider:
    """
    Gemini Code Assist keeps its extension state in an internal
    format and bills through Google Cloud, so an installed extension
    links to the Cloud Console instead of reporting numbers.
    """

    def __init__(self, extension_dir: "Path") -> "None":
        self._extension_dir = extension_dir

    @property
    def name(self) -> "str":
        return "gemini-code-assist"

    @property
    def display_name(self) -> "str":
        return "Gemini Assist"

    async def is_available(self) -> "bool":
        return self._extension_dir.is_dir()

    def paths_to_check(self) -> "list[str]":
        return [str(self._extension_dir)]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not await asyncio.to_thread(_has_entries, self._extension_dir):
            return ProviderResult.not_found(self.name, self.display_name)
        return ProviderResult.link_only(
            self.name,
            self.display_name,
            GOOGLE_CLOUD_CONSOLE_URL,
        )
