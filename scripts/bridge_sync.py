#!/usr/bin/env python3
"""Run glucosync against a live companion bridge.

Bridge settings come from ``GLUCOSYNC_BRIDGE_*``/``GLUCOSYNC_MQTT_*`` and
sync settings from ``GLUCOSYNC_*`` environment variables.

Default behavior:
1) check capability and authorization (requesting it with --request),
2) run one deletion + addition cycle,
3) print what the cycle removed and appended.

With --watch the script keeps running and prints the repository changes of
every cycle triggered by a change notification until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from glucosync import (  # noqa: E402
    BridgeConfig,
    BridgeSampleStore,
    GlucoSyncError,
    GlucoseSample,
    MergeReport,
    SyncConfig,
    SyncEngine,
)


class PrintingRepository:
    """Repository that prints every change instead of persisting it."""

    async def store_glucose(self, samples: Sequence[GlucoseSample]) -> None:
        for sample in samples:
            print(json.dumps({"op": "store", **sample.model_dump(mode="json")}))

    async def remove_glucose(self, identifiers: Sequence[str]) -> None:
        print(json.dumps({"op": "remove", "identifiers": list(identifiers)}))


def _print_report(report: MergeReport) -> None:
    print(
        f"removed={len(report.removed)} appended={len(report.appended)} "
        f"ledger={report.ledger_size} skipped={report.skipped}"
    )


async def run(args: argparse.Namespace) -> int:
    bridge_config = BridgeConfig.from_env(mqtt_enabled=args.watch)
    sync_config = SyncConfig.from_env()

    async with BridgeSampleStore(bridge_config) as store:
        async with SyncEngine(store, PrintingRepository(), config=sync_config) as engine:
            if not await engine.is_authorized():
                if not args.request:
                    print("Not authorized; rerun with --request", file=sys.stderr)
                    return 2
                if not await engine.request_permission():
                    print("Access was not granted", file=sys.stderr)
                    return 2

            _print_report(await engine.sync_now())

            if args.watch:
                print("Watching for change notifications (Ctrl+C to stop)")
                await asyncio.Event().wait()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Sync glucose samples with a companion bridge.")
    parser.add_argument("--request", action="store_true", help="Request authorization if it is missing")
    parser.add_argument("--watch", action="store_true", help="Keep running and follow change notifications")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        code = 0
    except GlucoSyncError as exc:
        print(f"error: {exc}", file=sys.stderr)
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
