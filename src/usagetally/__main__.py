import asyncio
import sys

import structlog
from prometheus_client import CollectorRegistry
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from usagetally.cli import parse_args
from usagetally.collector import Collector, filter_providers
from usagetally.config import Config
from usagetally.doctor import run_checks, source_kind
from usagetally.logging import setup_logging
from usagetally.metrics import MetricsUpdater
from usagetally.models import ProviderResult
from usagetally.paths import ToolPaths
from usagetally.pricing import PricingTable
from usagetally.provider.amazon_q import AmazonQProvider
from usagetally.provider.base import UsageProvider
from usagetally.provider.claude_code import ClaudeCodeProvider
from usagetally.provider.cline import ClineProvider
from usagetally.provider.cursor import CursorProvider
from usagetally.provider.gemini_cli import GeminiCLIProvider
from usagetally.provider.gemini_code_assist import GeminiCodeAssistProvider
from usagetally.provider.github_copilot import GitHubCopilotProvider
from usagetally.provider.openai_codex import OpenAICodexProvider
from usagetally.provider.opencode import OpenCodeProvider
from usagetally.provider.replit import ReplitProvider
from usagetally.provider.sourcegraph_cody import SourcegraphCodyProvider
from usagetally.provider.tabnine import TabnineProvider
from usagetally.provider.warp import WarpProvider
from usagetally.provider.windsurf import WindsurfProvider
from usagetally.report import build_table, format_csv, format_json, format_prometheus

logger = structlog.get_logger()


def build_providers(
    config: "Config",
    paths: "ToolPaths",
    pricing: "PricingTable",
) -> "list[UsageProvider]":
    """
    registers every bundled provider. The order here is the order of
    the rows in every output format.
    """
    return [
        ClaudeCodeProvider(
            paths.claude_projects_dir(),
            config_file=paths.claude_config_file(),
            pricing=pricing,
        ),
        CursorProvider(paths.cursor_global_db(), paths.cursor_workspace_storage()),
        GitHubCopilotProvider(
            paths.copilot_hosts_file(),
            token=config.github_token,
            logs_dir=paths.vscode_logs_dir(),
        ),
        ClineProvider(
            paths.cline_tasks_dir(),
            paths.roo_tasks_dir(),
            paths.roo_usage_tracking_file(),
            pricing=pricing,
        ),
        WindsurfProvider(paths.windsurf_cascade_dir(), paths.windsurf_config_dir()),
        WarpProvider(paths.warp_db(), logs_dir=paths.warp_logs_dir()),
        OpenCodeProvider(paths.opencode_storage_dir(), pricing=pricing),
        OpenAICodexProvider(api_key=config.openai_api_key),
        GeminiCLIProvider(paths.gemini_dir(), pricing=pricing),
        AmazonQProvider(paths.amazon_q_log_file(), paths.aws_config_file()),
        TabnineProvider(paths.tabnine_logs_dir()),
        GeminiCodeAssistProvider(paths.gemini_code_assist_dir()),
        SourcegraphCodyProvider(paths.cody_dir()),
        ReplitProvider(),
    ]


def _print_usage(
    results: "list[ProviderResult]",
    config: "Config",
    updater: "MetricsUpdater",
) -> "None":
    if config.output_format == "json":
        print(format_json(results))
    elif config.output_format == "csv":
        print(format_csv(results), end="")
    elif config.output_format == "prometheus":
        print(format_prometheus(results, updater), end="")
    else:
        console = Console()
        console.print(build_table(results))
        if config.verbose:
            console.print()
            for result in results:
                if result.data_source:
                    console.print(f"  {result.display_name}: {escape(result.data_source)}")
                if result.error:
                    console.print(f"  {result.display_name}: [red]{escape(result.error)}[/red]")


def _print_doctor(providers: "list[UsageProvider]") -> "None":
    checks = run_checks(providers)
    table = Table(title="Data Paths")
    table.add_column("Tool")
    table.add_column("Path")
    table.add_column("Found", justify="center")
    for check in checks:
        table.add_row(
            check.provider,
            escape(check.path),
            "[green]✓[/green]" if check.found else "[dim]✗[/dim]",
        )

    console = Console()
    console.print(table)
    found = sum(1 for check in checks if check.found)
    console.print(f"{found}/{len(checks)} paths found")


def _print_list(providers: "list[UsageProvider]") -> "None":
    table = Table(title="Supported Tools")
    table.add_column("Tool")
    table.add_column("Name")
    table.add_column("Source")
    for provider in providers:
        table.add_row(provider.name, provider.display_name, source_kind(provider))
    Console().print(table)


def main(argv: "list[str] | None" = None) -> "None":
    command, config = parse_args(argv)
    setup_logging(config.log_level)

    pricing = PricingTable.default()
    paths = ToolPaths(config.home)
    providers = filter_providers(build_providers(config, paths, pricing), config.tool)

    if not providers:
        print(f"No tool matches {config.tool!r}.", file=sys.stderr)
        raise SystemExit(1)

    if command == "list":
        _print_list(providers)
        return
    if command == "doctor":
        _print_doctor(providers)
        return

    updater = MetricsUpdater(registry=CollectorRegistry())
    collector = Collector(providers, updater, timeout=config.timeout_seconds)
    logger.info("providers_selected", providers=[p.name for p in providers])

    results = asyncio.run(collector.collect())
    _print_usage(results, config, updater)


if __name__ == "__main__":
    main()
