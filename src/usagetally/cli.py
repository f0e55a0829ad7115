import argparse

from usagetally.config import OUTPUT_FORMATS, Config


def build_parser() -> "argparse.ArgumentParser":
    parser = argparse.ArgumentParser(
        prog="usagetally",
        description="Query usage statistics from all your AI coding tools in one command",
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["usage", "doctor", "list"],
        default="usage",
        help="usage (default), doctor to check data paths, list to show supported tools",
    )
    parser.add_argument(
        "-t",
        "--tool",
        dest="tool",
        default=None,
        help="Only query tools matching this name (e.g. claude-code, cursor)",
    )
    parser.add_argument(
        "-f",
        "--format",
        dest="output_format",
        default="table",
        choices=list(OUTPUT_FORMATS),
        help="Output format (default: table)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="store_true",
        help="Show the data source of every tool",
    )
    parser.add_argument(
        "--timeout",
        dest="timeout",
        type=float,
        default=None,
        help="Per-tool timeout in seconds, 0 disables it (default: 30)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )
    return parser


def parse_args(argv: "list[str] | None" = None) -> "tuple[str, Config]":
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.from_env()
    except ValueError as exc:
        parser.error(str(exc))

    config.tool = args.tool
    config.output_format = args.output_format
    config.verbose = args.verbose
    config.log_level = args.log_level
    if args.timeout is not None:
        if args.timeout < 0:
            parser.error("--timeout must not be negative")
        config.timeout = args.timeout
    return args.command, config
