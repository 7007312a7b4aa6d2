"""
Command line entry point: catalog tools and a terminal play session.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from .catalog import builtin_source, get_catalog_stats, load_catalog_file, save_catalog_file
from .config import get_settings
from .controller import ProgressionController
from .difficulty import TIER_ORDER, get_tier_description, get_tier_emoji
from .errors import PuzzleSourceError
from .lichess_source import DEFAULT_REQUEST_DELAY, LichessPuzzleSource
from .position import decode_position, render_ascii
from .puzzle_types import PuzzleRecord, Tier
from .scoring import format_elapsed


def _print_puzzle(puzzle: PuzzleRecord) -> None:
    print("\n" + "=" * 50)
    print(f"{get_tier_emoji(puzzle.tier)} {puzzle.title}  ({puzzle.tier.value}, {puzzle.rating})")
    if puzzle.description:
        print(f"   {puzzle.description}")
    print("=" * 50)
    print(render_ascii(decode_position(puzzle.fen)))
    print(f"\n{puzzle.side_to_move.capitalize()} to move")


def _fetch_range(source: LichessPuzzleSource, args: argparse.Namespace) -> List[PuzzleRecord]:
    start = args.date_from
    end = args.date_to or date.today()
    print(f"From: {start}")
    print(f"To: {end}")
    result = source.fetch_daily_range(start, end, delay=args.delay)
    puzzles = list(result.puzzles)
    errors = result.error_count

    for pid in args.ids:
        try:
            puzzles.append(source.fetch_by_id(pid))
        except PuzzleSourceError as e:
            print(f"✗ {pid}: {e}")
            errors += 1

    print(f"\nSuccess: {len(puzzles)} puzzles")
    print(f"Errors: {errors} puzzles")
    return puzzles


def cmd_fetch(args: argparse.Namespace) -> int:
    settings = get_settings()
    source = LichessPuzzleSource(
        args.ids,
        include_daily=not args.no_daily,
        base_url=settings.lichess_base_url,
        timeout=settings.request_timeout,
    )
    print("📡 Fetching Lichess puzzles...")
    try:
        if args.date_from:
            puzzles = _fetch_range(source, args)
            if not puzzles:
                print("❌ No puzzles could be fetched")
                return 1
        else:
            puzzles = source.fetch_all()
    except (PuzzleSourceError, ValueError) as e:
        print(f"❌ {e}")
        return 1

    save_catalog_file(Path(args.out), puzzles)
    print(f"✓ Saved {len(puzzles)} puzzles to {args.out}")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    if args.catalog:
        try:
            puzzles = load_catalog_file(Path(args.catalog))
        except PuzzleSourceError as e:
            print(f"❌ {e}")
            return 1
    else:
        puzzles = builtin_source().fetch()

    stats = get_catalog_stats(puzzles)
    print("=== PUZZLE STATISTICS ===")
    print(f"Total Puzzles: {stats.total}")
    if stats.first_date:
        print(f"Date Range: {stats.first_date} to {stats.last_date}")
    print(f"Average Rating: {stats.average_rating}")
    print("\nBy Difficulty:")
    for tier in TIER_ORDER:
        print(f"  {tier.value.capitalize()}: {stats.by_tier[tier.value]}  ({get_tier_description(tier)})")
    return 0


PLAY_HELP = "Commands: move e2e4 | hint | reset | next | tier <name|all> | stats | quit"


def cmd_play(args: argparse.Namespace) -> int:
    controller = ProgressionController.from_settings()
    controller.events.on_move_accepted.append(lambda o: print(f"✅ {o.token}"))
    controller.events.on_move_rejected.append(lambda o: print(f"❌ {o.token} is not the move"))
    controller.events.on_hint_unavailable.append(lambda: print("⚠️  No hint available"))
    controller.events.on_puzzle_loaded.append(_print_puzzle)
    controller.events.on_puzzle_solved.append(
        lambda c: print(
            f"🎉 Solved in {format_elapsed(c.elapsed_seconds or 0)}! "
            f"+{c.points_earned} points, rating {c.rating_delta:+d}"
        )
    )
    controller.events.on_achievement_unlocked.append(
        lambda a: print(f"🏆 {a.title}: {a.description} +{a.points} points")
    )

    print(PLAY_HELP)
    with controller:
        controller.load_puzzle(args.tier)
        while True:
            try:
                line = input("> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not line:
                continue
            cmd, _, rest = line.partition(" ")
            cmd = cmd.lower()
            rest = rest.strip()

            try:
                if cmd in ("quit", "exit", "q"):
                    break
                elif cmd == "move":
                    token = rest.replace(" ", "").lower()
                    promotion = token[4:] or None
                    controller.submit_move(token[:2], token[2:4], promotion)
                elif cmd == "hint":
                    hint = controller.request_hint()
                    if hint:
                        print(f"💡 Hint: The next move is {hint}")
                elif cmd == "reset":
                    controller.reset_current_puzzle()
                elif cmd == "next":
                    controller.next_puzzle()
                elif cmd == "tier":
                    controller.change_tier(None if rest.lower() in ("", "all") else rest)
                elif cmd == "stats":
                    s = controller.stats
                    print(f"ELO {round(s.rating)} | Points {s.points} | Streak {s.streak} | Solved {s.puzzles_solved}")
                else:
                    print(PLAY_HELP)
            except ValueError as e:
                print(f"❌ {e}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="puzzle_trainer", description="Chess puzzle trainer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Fetch Lichess puzzles into a JSON catalog")
    fetch.add_argument("--id", dest="ids", action="append", default=[], help="Lichess puzzle id (repeatable)")
    fetch.add_argument("--no-daily", action="store_true", help="Skip the daily puzzle")
    fetch.add_argument("--out", default="puzzles.json", help="Output catalog path")
    fetch.add_argument("--from", dest="date_from", type=date.fromisoformat, help="First daily puzzle date (YYYY-MM-DD)")
    fetch.add_argument("--to", dest="date_to", type=date.fromisoformat, help="Last daily puzzle date (defaults to today)")
    fetch.add_argument("--delay", type=float, default=DEFAULT_REQUEST_DELAY, help="Seconds between requests")
    fetch.set_defaults(func=cmd_fetch)

    stats = sub.add_parser("stats", help="Show catalog statistics")
    stats.add_argument("--catalog", help="JSON catalog (defaults to the built-in puzzles)")
    stats.set_defaults(func=cmd_stats)

    play = sub.add_parser("play", help="Solve puzzles in the terminal")
    play.add_argument("--tier", choices=[t.value for t in Tier], help="Start in this tier")
    play.set_defaults(func=cmd_play)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
