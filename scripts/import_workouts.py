from __future__ import annotations

import argparse
from pathlib import Path

from api.observability import configure_logging
from core.config import get_settings
from core.db import session_scope
from core.errors import ValidationError
from core.services.imports import import_workouts, parse_workouts, read_spreadsheet
from core.services.users import get_user_by_email


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import scheduled workouts from a spreadsheet.")
    parser.add_argument("path", type=Path, help=".xlsx, .xls or .csv file")
    parser.add_argument("--creator", required=True, help="email of the user the workouts are created for")
    parser.add_argument("--dry-run", action="store_true", help="parse and report without writing")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        df = read_spreadsheet(args.path.read_bytes(), args.path.name)
    except ValidationError as exc:
        print(f"error={exc.message}")
        return 2
    report = parse_workouts(
        df,
        timezone=settings.display_timezone,
        default_max_participants=settings.import_default_max_participants,
    )
    for line in report.errors:
        print(f"skipped: {line}")

    if args.dry_run:
        print(f"parsed={len(report.workouts)} failed={report.failed} dry_run=true")
        return 0

    with session_scope() as s:
        creator = get_user_by_email(s, args.creator)
        if creator is None:
            print(f"error=unknown creator {args.creator}")
            return 2
        created = import_workouts(s, report.workouts, created_by=creator.id)
        imported = len(created)

    print(f"imported={imported} failed={report.failed}")
    return 0 if report.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
