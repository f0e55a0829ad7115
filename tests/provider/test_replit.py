import pytest

from usagetally.models import ProviderStatus
from usagetally.provider.replit import REPLIT_USAGE_URL, ReplitProvider


class TestReplitProvider:
    @pytest.mark.asyncio
    async def test_link_only(self) -> "None":
        provider = ReplitProvider()
        result = await provider.get_usage()

        assert result.status is ProviderStatus.LINK_ONLY
        assert result.data_source == REPLIT_USAGE_URL
        assert result.usage is None
        assert await provider.is_available() is True
