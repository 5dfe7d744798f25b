from __future__ import annotations

import logging
from typing import Any, Dict

import psutil
from scapy.error import Scapy_Exception
from scapy.sendrecv import sniff

from dnids.core.errors import CaptureError

from .base import PacketCallback
from .decode import describe

logger = logging.getLogger(__name__)


class LiveInterfaceSource:
    """
    Captures from a live interface with scapy.

    Needs root or CAP_NET_RAW. run never returns on its own, the process
    ends it.
    """

    name = "live"
    replay = False

    def __init__(self, interface: str):
        self.interface = interface
        self._delivered = 0

    def open(self) -> None:
        if self.interface not in psutil.net_if_addrs():
            raise CaptureError(f"couldn't open device {self.interface}: no such interface")

    def _on_frame(self, on_packet: PacketCallback, frame) -> None:
        on_packet(describe(frame))
        self._delivered += 1

    def run(self, on_packet: PacketCallback) -> None:
        logger.info("Capturing on %s", self.interface)
        try:
            sniff(iface=self.interface, prn=lambda f: self._on_frame(on_packet, f), store=False)
        except (OSError, Scapy_Exception) as e:
            raise CaptureError(f"capture on {self.interface} failed: {e}") from e

        raise CaptureError(f"capture on {self.interface} stopped")

    def status(self) -> Dict[str, Any]:
        return {"name": self.name, "interface": self.interface, "delivered": self._delivered}
