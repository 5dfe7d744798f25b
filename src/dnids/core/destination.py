from __future__ import annotations
from dataclasses import dataclass, field
from typing import List

from .models import FlowKey


@dataclass
class DestinationTraffic:
    """
    Traffic seen for one destination address during the current timeslice.

    Example:
      Ten packets of the same TCP connection to 10.0.0.2 count as
      ten packets, their summed bytes, and one flow.
    """

    packets: int = 0
    bytes: int = 0
    flows: List[FlowKey] = field(default_factory=list)

    def add(self, size: int, flow: FlowKey) -> None:
        """
        Count one packet and record its flow if it is new for this destination.
        """
        self.packets += 1
        self.bytes += size

        # linear scan
        for known in self.flows:
            if known == flow:
                return
        self.flows.append(flow)

    @property
    def flow_count(self) -> int:
        return len(self.flows)
