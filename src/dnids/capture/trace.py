from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from scapy.error import Scapy_Exception
from scapy.utils import PcapReader

from dnids.core.errors import CaptureError

from .base import PacketCallback
from .decode import describe

logger = logging.getLogger(__name__)


class TraceFileSource:
    """
    Replays a pcap or pcapng trace.

    Frames are delivered in file order, as fast as the engine takes them,
    each tagged with its capture timestamp. Pacing is the scheduler's job.
    """

    name = "trace"
    replay = True

    def __init__(self, path: str):
        self.path = path
        self._delivered = 0

    def open(self) -> None:
        if not Path(self.path).is_file():
            raise CaptureError(f"couldn't open pcap file {self.path}: no such file")
        try:
            # Reading the header is enough to reject a non pcap file early.
            PcapReader(self.path).close()
        except (OSError, Scapy_Exception) as e:
            raise CaptureError(f"couldn't open pcap file {self.path}: {e}") from e

    def run(self, on_packet: PacketCallback) -> None:
        try:
            with PcapReader(self.path) as reader:
                for frame in reader:
                    on_packet(describe(frame, ts=float(frame.time)))
                    self._delivered += 1
        except (OSError, Scapy_Exception) as e:
            raise CaptureError(f"error reading {self.path}: {e}") from e

        logger.info("Trace %s exhausted after %d packets", self.path, self._delivered)

    def status(self) -> Dict[str, Any]:
        return {"name": self.name, "path": self.path, "delivered": self._delivered}
