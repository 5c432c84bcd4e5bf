"""
Run an FCC import from the command line.

Continuations are handled in this process: whenever an invocation runs out
of time, the next one is started here with the checkpoint it emitted.

    python scripts/run_import.py --data-type AM
    python scripts/run_import.py --job-id fcc_ALL_1705312200000 \
        --resume-json '{"recordCount": 10, "processedCount": 10, "skipLines": 12, "phase": "amateur"}'
"""

import argparse
import asyncio
import json
import logging
import sys
import os
from datetime import datetime, timezone
from typing import Any, Dict, List

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.logging import setup_logging
from ingestion.dispatch import ContinuationDispatcher
from ingestion.runner import build_runner

setup_logging()
logger = logging.getLogger(__name__)


class InlineContinuationDispatcher(ContinuationDispatcher):
    """Queue continuations for the loop below instead of re-invoking remotely"""

    def __init__(self):
        self.pending: List[Dict[str, Any]] = []

    async def dispatch(self, event: Dict[str, Any]) -> None:
        self.pending.append(event)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Import FCC ULS amateur license data")
    parser.add_argument("--job-id", help="Job id (default: fcc_manual_<dataType>_<epoch ms>)")
    parser.add_argument("--data-type", default="ALL", choices=["AM", "EN", "ALL", "am", "en", "all"])
    parser.add_argument("--resume-json", help="Checkpoint JSON to continue an existing job from")
    return parser.parse_args(argv)


def build_event(args) -> Dict[str, Any]:
    data_type = args.data_type.upper()
    job_id = args.job_id or f"fcc_manual_{data_type}_{int(datetime.now(timezone.utc).timestamp() * 1000)}"
    event = {"jobId": job_id, "dataType": data_type, "source": "manual"}

    if args.resume_json:
        event["continuation"] = True
        event["resumeData"] = json.loads(args.resume_json)
    return event


async def run_import(event: Dict[str, Any]) -> Dict[str, Any]:
    dispatcher = InlineContinuationDispatcher()
    runner = build_runner(dispatcher, config=settings)

    result = await runner.handle(event)
    while result["status"] == "continued" and dispatcher.pending:
        next_event = dispatcher.pending.pop(0)
        logger.info(f"Continuing {next_event['jobId']} from {next_event['resumeData']}")
        result = await runner.handle(next_event)

    return result


def main(argv=None) -> int:
    args = parse_args(argv)
    event = build_event(args)

    logger.info(f"Starting FCC import {event['jobId']} ({event['dataType']})")
    result = asyncio.run(run_import(event))
    logger.info(f"FCC import finished: {json.dumps(result, default=str)}")

    return 0 if result["status"] == "completed" else 1


if __name__ == "__main__":
    sys.exit(main())
