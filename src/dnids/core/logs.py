from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(logfile: Optional[str], level: str = "INFO") -> None:
    """
    Console plus log file.

    The log file is truncated at startup, every line of this run is
    appended after that.
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if logfile:
        log_path = Path(logfile)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_path), mode="w", encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # scapy is chatty at INFO about interfaces and routes
    logging.getLogger("scapy").setLevel(logging.WARNING)
