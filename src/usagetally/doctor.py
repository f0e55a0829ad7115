import os
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from usagetally.provider.base import UsageProvider

ENV_VAR_MARKER = " environment variable"


@dataclass(frozen=True, slots=True)
class PathCheck:
    provider: "str"
    path: "str"
    found: "bool"


def check_path(path: "str") -> "bool":
    """
    URLs always count as found, "<NAME> environment variable" markers
    are found when the variable is set, anything else is a file path.
    """
    if path.startswith(("http://", "https://")):
        return True
    if path.endswith(ENV_VAR_MARKER):
        return bool(os.environ.get(path[: -len(ENV_VAR_MARKER)].strip()))
    return Path(path).exists()


def run_checks(providers: "Sequence[UsageProvider]") -> "list[PathCheck]":
    checks: "list[PathCheck]" = []
    for provider in providers:
        for path in provider.paths_to_check():
            if not path:
                continue
            checks.append(PathCheck(provider.display_name, path, check_path(path)))
    return checks


def source_kind(provider: "UsageProvider") -> "str":
    """
    describes where a provider gets its data from, judged by the
    first path it declares.
    """
    paths = [p for p in provider.paths_to_check() if p]
    if not paths:
        return "unknown"
    first = paths[0]
    if first.startswith(("http://", "https://")):
        return "web"
    if first.endswith(ENV_VAR_MARKER):
        return "api"
    return "local"
