"""Entry point for hook invocations and maintenance CLI commands."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from jarvis_hooks.core.errors import ConfigurationError, JarvisHooksError

if TYPE_CHECKING:
    from jarvis_hooks.config import Settings
    from jarvis_hooks.factory import ServiceContainer

logger = logging.getLogger(__name__)

_HOOK_USAGE = (
    "Usage: jarvis-hooks hook <event>\n"
    "Events: session-start, user-prompt-submit, pre-tool-use, post-tool-use, pre-compact"
)


def _load_settings() -> Settings:
    """Settings for CLI commands.

    Raises:
        ConfigurationError: If the environment holds invalid settings.
    """
    from jarvis_hooks.config import get_settings

    try:
        return get_settings()
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _services() -> ServiceContainer:
    from jarvis_hooks.core.logging import configure_logging
    from jarvis_hooks.factory import ServiceFactory

    settings = _load_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    return ServiceFactory(settings).create_all()


def run_hook(argv: list[str]) -> int:
    """Run one hook invocation (stdin -> stdout).

    Args:
        argv: Arguments after ``hook``.

    Returns:
        Exit code (1 if the event was blocked).
    """
    if not argv or argv[0] in ("--help", "-h"):
        print(_HOOK_USAGE)
        return 0

    from jarvis_hooks.hooks.dispatcher import main as dispatch_main

    return dispatch_main(argv[0])


def run_sweep(args: argparse.Namespace) -> int:
    """Run the archival sweep.

    Args:
        args: Parsed command line arguments.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    services = _services()
    try:
        result = services.sweeper.run(dry_run=args.dry_run)
    except JarvisHooksError as e:
        logger.error(f"Sweep failed: {e}")
        print(f"Error: {e}")
        return 1

    prefix = "Would move" if result.dry_run else "Moved"
    for move in result.moves:
        print(
            f"{prefix} {move.pattern_key} ({move.entry_id}): "
            f"{move.from_tier.value} -> {move.to_tier.value} [{move.reason}]"
        )
    print(
        f"\n{result.promoted} promoted to warm, {result.demoted} demoted to cold "
        f"({result.overflowed} over capacity)"
        + (" (dry run)" if result.dry_run else "")
    )
    return 0


def run_review(args: argparse.Namespace) -> int:
    """List or resolve review inbox items."""
    from jarvis_hooks.core.models import ReviewStatus

    services = _services()

    if args.action == "list":
        items = services.inbox.items()
        if not items:
            print("Review inbox is empty.")
            return 0
        print(f"{'ID':<38} {'Status':<10} {'Freq':>5} {'Conf':>5}  Pattern")
        print(f"{'-' * 38} {'-' * 10} {'-' * 5} {'-' * 5}  {'-' * 20}")
        for item in items:
            print(
                f"{item.id:<38} {item.status.value:<10} {item.frequency:>5} "
                f"{item.confidence:>5.2f}  {item.pattern_key}"
            )
        print(f"\n{len(items)} item(s)")
        return 0

    status = {
        "confirm": ReviewStatus.CONFIRMED,
        "validate": ReviewStatus.VALIDATED,
        "reject": ReviewStatus.REJECTED,
    }[args.action]
    try:
        entry = services.tiers.set_review_status(args.id, status)
        services.inbox.set_status(args.id, status)
    except JarvisHooksError as e:
        print(f"Error: {e}")
        return 1
    print(f"{entry.source_pattern_key}: {status.value} (applied on next sweep)")
    return 0


def run_status(args: argparse.Namespace) -> int:
    """Print tier sizes, pending snapshot and degradation level."""
    from jarvis_hooks.core.models import Tier
    from jarvis_hooks.services.health import level_name

    services = _services()
    counts = services.tiers.counts()
    health = services.health.snapshot()
    level = services.health.level(health)
    snapshot = services.snapshots.peek()

    if args.json:
        print(
            json.dumps(
                {
                    "tiers": {tier.value: counts[tier] for tier in Tier},
                    "review_pending": len(services.inbox.items()),
                    "pending_snapshot": snapshot.model_dump(mode="json") if snapshot else None,
                    "degradation_level": level,
                    "consecutive_failures": health.consecutive_failures,
                },
                indent=2,
            )
        )
        return 0

    print("Jarvis Hooks - Status")
    for tier in Tier:
        print(f"  {tier.value:<6} {counts[tier]:>5}")
    print(f"  review {len(services.inbox.items()):>5}")
    print()
    if snapshot is not None:
        print(f"Pending compaction snapshot (skill={snapshot.active_skill or '-'})")
    else:
        print("No pending compaction snapshot")
    print(f"Degradation level {level}: {level_name(level)}")
    for name, count in sorted(health.consecutive_failures.items()):
        if count:
            print(f"  {name}: {count} consecutive failure(s)")
    return 0


def run_reset_health(args: argparse.Namespace) -> int:
    services = _services()
    services.health.reset()
    print("Hook health reset; all hooks enabled.")
    return 0


def run_setup(args: argparse.Namespace) -> int:
    """Print the Claude Code hooks settings block."""
    from jarvis_hooks.tools.setup_hooks import generate_hook_config

    try:
        config = generate_hook_config(mode=args.mode, python_path=args.python_path or "")
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if args.json:
        print(json.dumps({"hooks": config["hooks"]}, indent=2))
        return 0

    print("Jarvis Hooks - Hook Configuration")
    print(f"Command: {config['command']}")
    print()
    print(json.dumps({"hooks": config["hooks"]}, indent=2))
    print()
    print(config["instructions"])
    return 0


def run_cron(args: argparse.Namespace) -> int:
    from jarvis_hooks.tools.setup_hooks import cron_line

    try:
        print(cron_line(args.schedule, mode=args.mode, python_path=args.python_path or ""))
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    return 0


def run_version() -> None:
    """Print version information."""
    from jarvis_hooks import __version__

    print(f"jarvis-hooks {__version__}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jarvis-hooks",
        description="Jarvis hook orchestration and adaptive memory",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
    )

    subparsers.add_parser(
        "hook",
        help="Run one hook invocation (reads the event from stdin)",
    )

    sweep_parser = subparsers.add_parser(
        "sweep",
        help="Move learnings between hot, warm and cold tiers",
    )
    sweep_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the moves without applying them",
    )

    review_parser = subparsers.add_parser(
        "review",
        help="List or resolve promoted learnings awaiting review",
    )
    review_sub = review_parser.add_subparsers(dest="action", required=True)
    review_sub.add_parser("list", help="List review inbox items")
    for action, help_text in (
        ("confirm", "Confirm a learning (moves to warm on next sweep)"),
        ("validate", "Validate a learning (moves to warm once frequent enough)"),
        ("reject", "Reject a learning (archived on next sweep)"),
    ):
        action_parser = review_sub.add_parser(action, help=help_text)
        action_parser.add_argument("id", help="Review item ID")

    status_parser = subparsers.add_parser(
        "status",
        help="Show tier sizes, pending snapshot and degradation level",
    )
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    subparsers.add_parser(
        "reset-health",
        help="Reset hook failure counters and degradation",
    )

    for name, help_text in (
        ("setup", "Print the Claude Code hooks settings block"),
        ("cron", "Print a crontab line for the archival sweep"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--mode",
            choices=["prod", "dev"],
            default="prod",
            help="prod: installed console script; dev: python -m jarvis_hooks",
        )
        sub.add_argument(
            "--python-path",
            default="",
            help="Python interpreter for dev mode (default: current interpreter)",
        )
        if name == "setup":
            sub.add_argument(
                "--json",
                action="store_true",
                help="Output only the hooks JSON",
            )
        else:
            sub.add_argument(
                "--schedule",
                default="17 3 * * *",
                help="Cron schedule (default: daily at 03:17)",
            )

    return parser


_COMMANDS = {
    "sweep": run_sweep,
    "review": run_review,
    "status": run_status,
    "reset-health": run_reset_health,
    "setup": run_setup,
    "cron": run_cron,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point with subcommand support.

    Returns:
        Process exit code.
    """
    argv = sys.argv[1:] if argv is None else argv

    # Fast-path: bypass argparse for hook dispatch
    if argv and argv[0] == "hook":
        return run_hook(argv[1:])

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        run_version()
        return 0

    command = _COMMANDS.get(args.command or "")
    if command is None:
        parser.print_help()
        return 1

    try:
        return command(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
