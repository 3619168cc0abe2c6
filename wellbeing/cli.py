# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Deite wellbeing CLI — load dashboard series from the on-disk stores.

Usage:
    deite-wellbeing metrics --user U --window 7       Print a window's series
    deite-wellbeing metrics --user U --window 30 --force
    deite-wellbeing metrics --user U --kind balance   Positive/negative/neutral split
    deite-wellbeing metrics --user U --prefetch       Also warm the other windows
    deite-wellbeing metrics --user U --json           Machine-readable output
    deite-wellbeing summary --user U --window 30      Averages + balance
    deite-wellbeing invalidate --user U               Clear a user's cache
    deite-wellbeing config                            Show effective config
    deite-wellbeing --data-dir PATH ...               Override data directory
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from wellbeing.windows import BALANCE, METRIC_KINDS, WINDOWS, window_label


def _bar(score: int, width: int = 20) -> str:
    filled = round(score / 100 * width)
    return "#" * filled + "." * (width - filled)


def _metrics(user_id: str, window: int, kind: str, force: bool, prefetch: bool,
             as_json: bool) -> None:
    from wellbeing.config import load_config
    from wellbeing.service import create_service

    async def _run():
        service = create_service(load_config(), prefetch=prefetch)
        try:
            return await service.get_metrics(
                user_id, window, force_refresh=force, metric_kind=kind,
            )
        finally:
            await service.close()

    records = asyncio.run(_run())

    if as_json:
        print(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    print(f"\n  {user_id}: {kind}, {window_label(window)} ({len(records)} day(s))\n")
    if not records:
        print("  No data yet.")
        return
    for r in records:
        if kind == BALANCE:
            print(
                f"  {r.date.isoformat()}  positive {r.positive:3d} {_bar(r.positive)}"
                f"  negative {r.negative:3d}  neutral {r.neutral:3d}"
            )
            continue
        print(
            f"  {r.date.isoformat()}  happy {r.happiness:3d} {_bar(r.happiness)}"
            f"  energy {r.energy:3d}  anxiety {r.anxiety:3d}  stress {r.stress:3d}"
        )
    print()


def _summary(user_id: str, window: int) -> None:
    from wellbeing.config import load_config
    from wellbeing.service import create_service

    async def _run():
        service = create_service(load_config(), prefetch=False)
        try:
            await service.get_metrics(user_id, window)
            return service.summary(user_id, window)
        finally:
            await service.close()

    print(json.dumps(asyncio.run(_run()), indent=2))


def _invalidate(user_id: str) -> None:
    from wellbeing.config import load_config
    from wellbeing.service import create_service

    async def _run():
        service = create_service(load_config(), prefetch=False)
        try:
            return service.invalidate_all(user_id)
        finally:
            await service.close()

    removed = asyncio.run(_run())
    print(f"Cleared {removed} cached window(s) for {user_id}")


def _show_config() -> None:
    from wellbeing.config import load_config
    print(json.dumps(load_config().model_dump(), indent=2))


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="deite-wellbeing",
        description="Deite wellbeing — dashboard series loader",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Override data directory (default: $DEITE_DATA_DIR or ~/.deite/)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log to stderr")

    sub = parser.add_subparsers(dest="command")

    # metrics
    metrics_parser = sub.add_parser("metrics", help="Print a window's series")
    metrics_parser.add_argument("--user", required=True, help="User id")
    metrics_parser.add_argument("--window", type=int, choices=WINDOWS, default=7,
                                help="Window in days (365 = lifetime, default: 7)")
    metrics_parser.add_argument("--kind", choices=METRIC_KINDS, default="emotional",
                                help="Metric kind (default: emotional)")
    metrics_parser.add_argument("--force", action="store_true",
                                help="Ignore the cutoff and refresh now")
    metrics_parser.add_argument("--prefetch", action="store_true",
                                help="Also refresh the other windows of this kind before exiting")
    metrics_parser.add_argument("--json", action="store_true", dest="as_json",
                                help="Print JSON instead of a table")

    # summary
    summary_parser = sub.add_parser("summary", help="Averages and balance for a window")
    summary_parser.add_argument("--user", required=True, help="User id")
    summary_parser.add_argument("--window", type=int, choices=WINDOWS, default=7,
                                help="Window in days (default: 7)")

    # invalidate
    inv_parser = sub.add_parser("invalidate", help="Clear every cached window for a user")
    inv_parser.add_argument("--user", required=True, help="User id")

    # config
    sub.add_parser("config", help="Show effective configuration")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    # Resolve data dir: flag → env → default
    from core.paths import configure
    if args.data_dir:
        data_dir = args.data_dir.expanduser().resolve()
    else:
        env = os.environ.get("DEITE_DATA_DIR")
        data_dir = Path(env).expanduser().resolve() if env else Path.home() / ".deite"
    configure(data_dir)

    import logging
    from wellbeing.config import setup_logging
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stderr=args.verbose,
    )

    if args.command == "metrics":
        _metrics(args.user, args.window, args.kind, args.force, args.prefetch, args.as_json)
    elif args.command == "summary":
        _summary(args.user, args.window)
    elif args.command == "invalidate":
        _invalidate(args.user)
    elif args.command == "config":
        _show_config()


if __name__ == "__main__":
    main()
