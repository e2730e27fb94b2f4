"""Command line interface: ``pylocate {add,check,list,delete,share}``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from pylocate.app import LocateApp, MatchReport
from pylocate.config import LocateConfig
from pylocate.exceptions import LocateError
from pylocate.models.location import SavedLocation
from pylocate.share import format_coordinates, format_timestamp


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pylocate",
        description="Save labelled positions and check whether you are at one of them.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", default=None, metavar="PATH", help="SQLite database (env: LOCATE_DB_PATH)")

    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Save the current position under a name")
    add.add_argument("name", help="Label for the position")

    check = sub.add_parser("check", help="Compare the current position with saved ones")
    check.add_argument(
        "--threshold",
        type=float,
        default=None,
        metavar="METERS",
        help="Match distance (env: LOCATE_MATCH_THRESHOLD, default 20)",
    )

    sub.add_parser("list", help="List saved positions")

    delete = sub.add_parser("delete", help="Delete a saved position")
    delete.add_argument("id", type=int, help="Location id (see 'list')")

    sub.add_parser("share", help="Print saved positions as shareable text")

    return parser.parse_args(argv)


def _format_row(location: SavedLocation) -> str:
    coords = format_coordinates(location.latitude, location.longitude)
    return f"{location.id:>4}  {location.name}  ({coords})  {format_timestamp(location.timestamp)}"


def _format_report(report: MatchReport) -> str:
    here = format_coordinates(report.position.latitude, report.position.longitude)
    if report.matched:
        assert report.nearest is not None  # noqa: S101
        return f"match: {report.nearest.name}\ndistance: {report.distance:.1f}m\nposition: {here}"
    nearest = report.nearest.name if report.nearest is not None else "none"
    return f"no match (nearest: {nearest})\ndistance: {report.distance:.1f}m\nposition: {here}"


async def _run(args: argparse.Namespace) -> int:
    overrides = {"db_path": args.db} if args.db else {}
    config = LocateConfig.from_env(**overrides)

    async with LocateApp(config) as app:
        if args.command == "add":
            saved = await app.save_location(args.name)
            print(f"saved {saved.name!r} as #{saved.id}")
        elif args.command == "check":
            print(_format_report(await app.check_location(args.threshold)))
        elif args.command == "list":
            if not app.locations:
                print("no saved locations")
            for location in app.locations:
                print(_format_row(location))
        elif args.command == "delete":
            if not app.delete_location(args.id):
                print(f"no location with id {args.id}")
                return 1
            print(f"deleted #{args.id}")
        elif args.command == "share":
            print(app.share_text())
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return asyncio.run(_run(args))
    except LocateError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
