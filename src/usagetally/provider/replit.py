from usagetally.models import ProviderResult, TimeRange

REPLIT_USAGE_URL = "https://replit.com/usage"


class ReplitProvider:
    """
    Replit keeps usage behind an authenticated web session, so the
    provider only links to the usage page.
    """

    @property
    def name(self) -> "str":
        return "replit"

    @property
    def display_name(self) -> "str":
        return "Replit"

    async def is_available(self) -> "bool":
        return True

    def paths_to_check(self) -> "list[str]":
        return [f"{REPLIT_USAGE_URL} (web only)"]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        return ProviderResult.link_only(self.name, self.display_name, REPLIT_USAGE_URL)
