from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, NamedTuple, Optional

TCP = "TCP"
UDP = "UDP"
ICMP = "ICMP"
IP = "IP"
UNKNOWN = "unknown"

KNOWN_PROTOCOLS = frozenset({TCP, UDP, ICMP, IP})

PACKETS = "packets"
BYTES = "bytes"
FLOWS = "flows"

# Order matters: alert prefixes are composed in this order and the
# offending destination is picked by this precedence.
ALERT_CATEGORIES = (PACKETS, BYTES, FLOWS)


@dataclass(frozen=True)
class PacketDescriptor:
    """
    Normalized packet handed over by a capture source.

    The engine never sees scapy objects, only this.

    Fields:
      size
        IP total length in bytes.

      src, dst
        IP addresses as strings. Empty when the frame carried no IPv4 layer.

      src_port, dst_port
        Transport ports, 0 unless the packet is TCP or UDP.

      protocol
        TCP, UDP, ICMP, IP or unknown.

      ts
        Capture timestamp in seconds. Only meaningful when replaying a trace.
    """

    size: int
    src: str
    dst: str
    src_port: int = 0
    dst_port: int = 0
    protocol: str = UNKNOWN
    ts: Optional[float] = None

    @property
    def recognized(self) -> bool:
        return self.protocol in KNOWN_PROTOCOLS

    def flow_key(self) -> "FlowKey":
        return FlowKey(self.src, self.dst, self.src_port, self.dst_port, self.protocol)


class FlowKey(NamedTuple):
    """5 tuple identifying one traffic flow."""

    src: str
    dst: str
    src_port: int
    dst_port: int
    protocol: str


@dataclass(frozen=True)
class TrafficTotals:
    packets: int = 0
    bytes: int = 0
    flows: int = 0

    def __add__(self, other: "TrafficTotals") -> "TrafficTotals":
        return TrafficTotals(
            packets=self.packets + other.packets,
            bytes=self.bytes + other.bytes,
            flows=self.flows + other.flows,
        )


@dataclass(frozen=True)
class Report:
    """
    One timeslice summary as sent from a watchdog to the desman.

    alerts is the set of categories that fired. destination is only set
    when at least one category fired.
    """

    seq: int
    packets: int
    bytes: int
    flows: int
    alerts: FrozenSet[str] = field(default_factory=frozenset)
    destination: Optional[str] = None

    @property
    def totals(self) -> TrafficTotals:
        return TrafficTotals(self.packets, self.bytes, self.flows)
