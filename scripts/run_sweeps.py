"""Run the reservation sweeps once, or forever on a fixed interval.

Meant for the external scheduler (cron, a k8s CronJob, or a sidecar loop)::

    python -m scripts.run_sweeps            # one pass
    python -m scripts.run_sweeps --loop     # every SWEEP_INTERVAL_SECONDS
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from reservation_engine.config import settings
from reservation_engine.database import engine
from reservation_engine.main import build_state_machine

logger = logging.getLogger("scripts.run_sweeps")


async def run_once(machine) -> dict[str, int]:
    """Run all sweeps in order; each one logs and skips its own failures."""
    return {
        "expired": await machine.sweep_expired_holds(),
        "completed": await machine.sweep_completions(),
        "refunds_settled": await machine.sweep_pending_refunds(),
    }


async def run_forever(machine, interval: float) -> None:
    """Repeat sweep passes until cancelled; a failed pass is logged and retried next interval."""
    while True:
        try:
            summary = await run_once(machine)
        except Exception:
            logger.exception("Sweep pass failed")
        else:
            logger.info("Sweep pass finished: %s", summary)
        await asyncio.sleep(interval)


async def main(loop: bool) -> None:
    machine = build_state_machine()
    try:
        if loop:
            await run_forever(machine, settings.sweep_interval_seconds)
        else:
            summary = await run_once(machine)
            logger.info("Sweep pass finished: %s", summary)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--loop", action="store_true", help="Repeat every SWEEP_INTERVAL_SECONDS")
    args = parser.parse_args()
    asyncio.run(main(args.loop))
