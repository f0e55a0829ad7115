"""
Renderers for the ordered list of provider results.

JSON and CSV are the machine-readable outputs; their field layout is a
contract with downstream tooling. The table is for humans and the
Prometheus exposition is meant for node-exporter's textfile collector.
"""

import csv
import io
import json
from typing import Sequence

from prometheus_client import CollectorRegistry
from rich.console import Console
from rich.table import Table
from rich.text import Text

from usagetally.metrics import MetricsUpdater
from usagetally.models import ProviderResult, ProviderStatus, UsageData

CSV_HEADER: "list[str]" = [
    "Tool",
    "Status",
    "Today Input",
    "Today Output",
    "Month Input",
    "Month Output",
    "Total Input",
    "Total Output",
    "Est Cost",
]

STATUS_STYLES: "dict[ProviderStatus, tuple[str, str]]" = {
    ProviderStatus.ACTIVE: ("✓", "green"),
    ProviderStatus.UNSUPPORTED: ("?", "magenta"),
    ProviderStatus.NOT_FOUND: ("○", "dim"),
    ProviderStatus.NO_KEY: ("✗", "yellow"),
    ProviderStatus.AUTH_REQUIRED: ("⚠", "yellow"),
    ProviderStatus.ERROR: ("✗", "red"),
    ProviderStatus.LINK_ONLY: ("→", "blue"),
}


def format_number(num: "int") -> "str":
    if num == 0:
        return "-"
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return str(num)


def format_tokens(data: "UsageData") -> "str":
    if data.is_empty():
        return "-"

    if data.total_tokens == 0:
        text = f"{format_number(data.request_count)} reqs"
    else:
        text = f"{format_number(data.total_tokens)} tokens"
    # approximated counters are marked so they are not read as exact
    return f"~{text}" if data.estimated else text


def format_cost(cost: "float") -> "str":
    if cost == 0.0:
        return "-"
    if cost < 0.01:
        return "<$0.01"
    return f"${cost:.2f}"


def format_json(results: "Sequence[ProviderResult]") -> "str":
    return json.dumps(
        [result.to_dict() for result in results],
        indent=2,
        ensure_ascii=False,
    )


def format_csv(results: "Sequence[ProviderResult]") -> "str":
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for result in results:
        usage = result.usage
        if usage is None:
            counts = [0, 0, 0, 0, 0, 0]
            cost = 0.0
        else:
            counts = [
                usage.today.input_tokens,
                usage.today.output_tokens,
                usage.this_month.input_tokens,
                usage.this_month.output_tokens,
                usage.total.input_tokens,
                usage.total.output_tokens,
            ]
            cost = usage.total.estimated_cost
        writer.writerow(
            [result.display_name, result.status.label, *counts, f"{cost:.2f}"]
        )

    return buf.getvalue()


def build_table(results: "Sequence[ProviderResult]") -> "Table":
    table = Table(title="AI Coding Tools Usage")
    table.add_column("Tool", justify="left")
    table.add_column("Status")
    for header in ("Today", "This Week", "This Month", "Total", "Est Cost"):
        table.add_column(header, justify="right")

    for result in results:
        icon, style = STATUS_STYLES[result.status]
        status = Text(f"{icon} {result.status.label}", style=style)

        if result.usage is None:
            cells = ["-"] * 5
        else:
            usage = result.usage
            cells = [
                format_tokens(usage.today),
                format_tokens(usage.this_week),
                format_tokens(usage.this_month),
                format_tokens(usage.total),
                format_cost(usage.total.estimated_cost),
            ]
        table.add_row(result.display_name, status, *cells)

    return table


def format_table(results: "Sequence[ProviderResult]", width: "int" = 120) -> "str":
    console = Console(file=io.StringIO(), width=width, color_system=None)
    with console.capture() as capture:
        console.print(build_table(results))
    return capture.get()


def format_prometheus(
    results: "Sequence[ProviderResult]",
    updater: "MetricsUpdater | None" = None,
) -> "str":
    """
    renders results in the Prometheus text format. Pass the updater
    the collector recorded timings on to include them as well.
    """
    if updater is None:
        updater = MetricsUpdater(registry=CollectorRegistry())
    for result in results:
        updater.update_result(result)
    return updater.exposition()
