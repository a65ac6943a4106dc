import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from mailtriage.config import TriageConfig
from mailtriage.dependencies import build_pipeline
from mailtriage.exceptions import AuthError, ConfigError, StoreError
from mailtriage.services.scheduler import TriageScheduler

logger = logging.getLogger("mailtriage")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # googleapiclient logs every discovery fetch at INFO
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mailtriage",
        description="Label unread Gmail messages with Gemini and send automated replies.",
    )
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="PATTERN",
        help="add a sender pattern to the ignore list before starting (repeatable)",
    )
    parser.add_argument("--interval", type=int, default=None, help="seconds between passes (overrides TRIAGE_INTERVAL_SECONDS)")
    return parser.parse_args(argv)


async def _serve(scheduler: TriageScheduler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt.
            pass
    await scheduler.start_monitoring()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    try:
        config = TriageConfig()
    except ConfigError as e:
        configure_logging()
        logger.error("Error: %s", e)
        return 1
    configure_logging(config.log_level)

    if args.interval is not None:
        config.interval_seconds = args.interval

    try:
        config.validate()
    except ConfigError as e:
        logger.error("Error: %s", e)
        return 1

    logger.info("Environment: %s, mock data: %s", config.env.value, config.use_mock_data)

    try:
        pipeline = build_pipeline(config)
    except (AuthError, ConfigError) as e:
        logger.error("Fatal error: %s", e)
        return 1

    if args.ignore:
        try:
            pipeline.ignore_list.add_patterns(args.ignore)
        except StoreError as e:
            logger.error("Error updating ignore patterns: %s", e)
            return 1

    if args.once:
        report = pipeline.run_pass()
        return 0 if report.error is None else 2

    scheduler = TriageScheduler(pipeline, interval_seconds=config.interval_seconds)
    try:
        asyncio.run(_serve(scheduler))
    except KeyboardInterrupt:
        logger.info("Worker stopped!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
