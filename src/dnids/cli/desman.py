from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from dnids.core.config import DesmanConfig, load_config
from dnids.core.errors import DnidsError
from dnids.core.logs import setup_logging
from dnids.core.batch import summarize_batch
from dnids.core.server import Desman

logger = logging.getLogger("dnids.desman")


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dnids-desman",
        description="Accept N watchdogs, start them and collect their traffic reports",
    )
    p.add_argument("-w", "--write", dest="logfile", help="write the output in the specified log file")
    p.add_argument("-n", "--number", dest="watchdogs", type=int, help="the number of watchdogs in the NIDS")
    p.add_argument("--host", help="listen address (default: first non loopback IPv4 address)")
    p.add_argument("--port", type=int, help="listen port (default: 11353)")
    p.add_argument("--config", help="YAML config file, 'desman' section")
    p.add_argument("--log-level", dest="log_level", help="logging level (default: INFO)")
    return p


async def run(config: DesmanConfig) -> None:
    """
    Accept every watchdog, start them, then log batch totals until the
    last one disconnects.
    """
    desman = Desman(config)
    try:
        desman.bind()
        await desman.accept_all()
        await desman.start()

        async for batch in desman.rounds():
            totals = summarize_batch(batch)
            logger.info("Total traffic %d %d %d", totals.packets, totals.bytes, totals.flows)

        logger.info("Exiting...")
    finally:
        await desman.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_argparser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            DesmanConfig,
            "desman",
            config_path=args.config,
            watchdogs=args.watchdogs,
            logfile=args.logfile,
            host=args.host,
            port=args.port,
            log_level=args.log_level,
        )
    except (ValidationError, FileNotFoundError) as e:
        parser.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logfile, config.log_level)

    try:
        asyncio.run(run(config))
    except DnidsError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
