"""Command-line entry for agenda_lite.

Subcommands:
  expand      expand an encoded recurrence rule from an anchor
  agenda      print the day buckets for a YAML/JSON file of items
  reschedule  compute the new due date for an item dropped onto a section
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

import yaml
from dateutil import parser as date_parser

from . import _init_logging
from agenda_lite.calendar.bucketer import month_breaks
from agenda_lite.calendar.date_normalizer import format_display_date
from agenda_lite.calendar.models import CalendarItem
from agenda_lite.calendar.occurrence_generator import default_horizon, generate_occurrences
from agenda_lite.calendar.rrule_codec import describe_rule, parse_rule
from agenda_lite.core.config_loader import Config, load_config
from agenda_lite.core.config_manager import ConfigManager
from agenda_lite.core.lite_logging import configure_lite_logging
from agenda_lite.core.timezone_utils import now_utc, resolve_timezone
from agenda_lite.domain.pipeline import ProcessingContext
from agenda_lite.domain.pipeline_stages import create_agenda_pipeline
from agenda_lite.domain.rescheduler import Rescheduler, parse_section
from agenda_lite.exceptions import AgendaError

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the agenda_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="agenda_lite",
        description="agenda_lite - recurrence expansion, day buckets and rescheduling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m agenda_lite expand "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR;COUNT=5" --start 2025-03-03T09:00:00Z
  python -m agenda_lite agenda items.yaml --now 2025-03-01T08:00:00Z
  python -m agenda_lite reschedule items.yaml task-1 Tomorrow --today 2025-03-01
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML/JSON config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    expand = sub.add_parser("expand", help="Expand a recurrence rule")
    expand.add_argument("rule", help='Encoded rule, e.g. "FREQ=DAILY;INTERVAL=2;COUNT=4"')
    expand.add_argument("--start", required=True, help="Anchor start (ISO-8601)")
    expand.add_argument("--now", help="Reference time for the horizon (ISO-8601)")

    agenda = sub.add_parser("agenda", help="Print day buckets for an items file")
    agenda.add_argument("items", type=Path, help="YAML/JSON list of item records")
    agenda.add_argument("--now", help="Reference time for the horizon (ISO-8601)")

    reschedule = sub.add_parser("reschedule", help="Reschedule an item onto a section")
    reschedule.add_argument("items", type=Path, help="YAML/JSON list of item records")
    reschedule.add_argument("item_id", help="Id of the dropped item")
    reschedule.add_argument("section", help="Today, Tomorrow, Upcoming or Someday")
    reschedule.add_argument("--today", help="Viewer's current day (YYYY-MM-DD)")

    return parser


def _parse_instant(text: Optional[str]) -> Any:
    if text is None:
        return None
    return date_parser.isoparse(text)


def _read_items(path: Path) -> list[CalendarItem]:
    """Load item records from a YAML or JSON file (yaml.safe_load reads both)."""
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    if loaded is None:
        return []
    if isinstance(loaded, dict):
        loaded = loaded.get("items", [])
    if not isinstance(loaded, list):
        raise AgendaError(f"{path} must contain a list of items")
    return [CalendarItem.from_record(record) for record in loaded]


def _cmd_expand(args: argparse.Namespace, config: Config) -> int:
    anchor = _parse_instant(args.start)
    rule = parse_rule(args.rule, anchor_start=anchor)
    window_end = default_horizon(_parse_instant(args.now) or now_utc(), config.horizon_months)

    print(describe_rule(rule))
    print(f"  {anchor.isoformat()} (anchor)")
    for instant in generate_occurrences(
        rule, anchor, window_end=window_end, max_occurrences=config.max_occurrences_per_rule
    ):
        print(f"  {instant.isoformat()}")
    return 0


def _cmd_agenda(args: argparse.Namespace, config: Config) -> int:
    items = _read_items(args.items)
    context = ProcessingContext(
        horizon_months=config.horizon_months,
        max_occurrences_per_rule=config.max_occurrences_per_rule,
        now=_parse_instant(args.now),
        items=items,
    )
    result = asyncio.run(create_agenda_pipeline(config).process(context))
    if not result.success:
        raise AgendaError("; ".join(result.errors))

    buckets = result.buckets
    for bucket, new_month in zip(buckets, month_breaks(buckets)):
        if new_month:
            print(f"== {bucket.day.strftime('%B %Y')} ==")
        print(format_display_date(bucket.day))
        for item in bucket.items:
            marker = " (cont.)" if item.is_continuation else ""
            when = "all day" if item.all_day else item.start.strftime("%H:%M")
            print(f"  {when}  {item.title or item.id}{marker}")
    return 0


def _cmd_reschedule(args: argparse.Namespace, config: Config) -> int:
    items = {item.id: item for item in _read_items(args.items)}
    if args.item_id not in items:
        raise AgendaError(f"Item {args.item_id!r} not found in {args.items}")

    rescheduler = Rescheduler(config, resolve_timezone(config.default_timezone))
    today = _parse_instant(args.today).date() if args.today else None
    due = rescheduler.reschedule(items[args.item_id], parse_section(args.section), today)
    print(due.isoformat() if due is not None else "Someday (no due date)")
    return 0


_COMMANDS = {
    "expand": _cmd_expand,
    "agenda": _cmd_agenda,
    "reschedule": _cmd_reschedule,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Run the agenda_lite CLI.

    Returns:
        Process exit code
    """
    args = _create_parser().parse_args(argv)

    overrides = ConfigManager().load_full_config()
    _init_logging(os.environ.get("AGENDA_LOG_LEVEL"))
    configure_lite_logging(debug_mode=args.debug)

    try:
        config = load_config(args.config, overrides=overrides)
        return _COMMANDS[args.command](args, config)
    except AgendaError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
