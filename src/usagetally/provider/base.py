from typing import Protocol, Sequence

from usagetally.models import ProviderResult, TimeRange


class UsageProvider(Protocol):
    """
    UsageProvider stands as a common protocol that every
    data source adapter must satisfy.

    get_usage() must classify every recoverable failure (missing
    files, malformed records, unreachable hosts, bad credentials,
    locked databases) as a ProviderResult instead of raising. An
    adapter that cannot tell what went wrong returns an error
    result, never an empty active one.
    """

    @property
    def name(self) -> "str": ...

    @property
    def display_name(self) -> "str": ...

    async def is_available(self) -> "bool": ...

    def paths_to_check(self) -> "Sequence[str]": ...

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult": ...
