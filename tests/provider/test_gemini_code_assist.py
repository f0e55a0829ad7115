from pathlib import Path

import pytest

from usagetally.models import ProviderStatus
from usagetally.provider.gemini_code_assist import (
    GOOGLE_CLOUD_CONSOLE_URL,
    GeminiCodeAssistProvider,
)


class TestGeminiCodeAssistProvider:
    @pytest.mark.asyncio
    async def test_not_installed(self, tmp_path: "Path") -> "None":
        provider = GeminiCodeAssistProvider(tmp_path / "google.geminicodeassist")

        result = await provider.get_usage()

        assert result.status is ProviderStatus.NOT_FOUND
        assert await provider.is_available() is False

    @pytest.mark.asyncio
    async def test_empty_extension_dir(self, tmp_path: "Path") -> "None":
        extension = tmp_path / "google.geminicodeassist"
        extension.mkdir()

        result = await GeminiCodeAssistProvider(extension).get_usage()

        assert result.status is ProviderStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_installed_links_to_cloud_console(self, tmp_path: "Path") -> "None":
        extension = tmp_path / "google.geminicodeassist"
        extension.mkdir()
        (extension / "state.bin").write_bytes(b"\x00")

        result = await GeminiCodeAssistProvider(extension).get_usage()

        assert result.status is ProviderStatus.LINK_ONLY
        assert result.data_source == GOOGLE_CLOUD_CONSOLE_URL
        assert result.usage is None
