from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from dnids.capture.base import CaptureSource
from dnids.capture.live import LiveInterfaceSource
from dnids.capture.trace import TraceFileSource
from dnids.core.config import WatchdogConfig, load_config
from dnids.core.engine import TrafficAnalyzer
from dnids.core.errors import DnidsError
from dnids.core.link import DesmanLink
from dnids.core.logs import setup_logging
from dnids.core.scheduler import ReportScheduler

logger = logging.getLogger("dnids.watchdog")


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dnids-watchdog",
        description="Monitor traffic and report each timeslice to the desman",
    )
    src = p.add_mutually_exclusive_group()
    src.add_argument("-r", "--read", dest="pcapfile", help="read the specified pcap file")
    src.add_argument("-i", "--interface", help="listen on the specified interface")
    p.add_argument("-w", "--write", dest="logfile", help="write the output in the specified log file")
    p.add_argument("-c", "--connect", dest="desman", help="connect to the desman at this IP address")
    p.add_argument(
        "-t",
        "--timeslice",
        type=float,
        help="seconds to monitor traffic before each report (default: 1.0, minimum 0.1)",
    )
    p.add_argument("--port", type=int, help="desman port (default: 11353)")
    p.add_argument("--config", help="YAML config file, 'watchdog' section")
    p.add_argument("--log-level", dest="log_level", help="logging level (default: INFO)")
    return p


def build_source(config: WatchdogConfig) -> CaptureSource:
    if config.replay:
        return TraceFileSource(config.pcapfile)
    return LiveInterfaceSource(config.interface)


async def run(config: WatchdogConfig) -> None:
    source = build_source(config)
    source.open()

    link = DesmanLink()
    try:
        await link.connect(config.desman, config.port)
        await link.wait_start()

        scheduler = ReportScheduler(TrafficAnalyzer(), source, link, config.timeslice)
        await scheduler.run()
        logger.info("All reports sent: %s", scheduler.status())
    finally:
        await link.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_argparser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            WatchdogConfig,
            "watchdog",
            config_path=args.config,
            desman=args.desman,
            logfile=args.logfile,
            interface=args.interface,
            pcapfile=args.pcapfile,
            timeslice=args.timeslice,
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
