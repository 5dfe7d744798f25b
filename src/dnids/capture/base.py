from __future__ import annotations

from typing import Any, Callable, Dict, Protocol

from dnids.core.models import PacketDescriptor

PacketCallback = Callable[[PacketDescriptor], None]


class CaptureSource(Protocol):
    """
    Required interface for a capture source.

    A capture source is responsible for
    1. Opening the interface or trace, failing early with CaptureError
    2. Decoding frames into PacketDescriptor
    3. Handing every descriptor to the callback, in capture order

    The scheduler never imports scapy directly, it only talks to this.
    """

    name: str

    # True when descriptors carry trace timestamps and the run ends with the trace.
    replay: bool

    def open(self) -> None:
        """
        Called once before the watchdog connects to the desman.
        """
        ...

    def run(self, on_packet: PacketCallback) -> None:
        """
        Blocking. Runs in its own thread. A live source never returns,
        a trace source returns after the last frame.
        """
        ...

    def status(self) -> Dict[str, Any]:
        """
        Counters for the watchdog status line, at least name and delivered.
        """
        ...
