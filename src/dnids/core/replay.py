from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional


@dataclass
class ReplayState:
    """
    Shared state of a trace replay.

    boundary
      Timestamp closing the current timeslice. None until the first packet.

    backlog
      Report texts produced while replaying, oldest first.

    Only mutated while holding the engine lock.
    """

    timeslice: float
    boundary: Optional[float] = None
    backlog: Deque[str] = field(default_factory=deque)

    def crosses(self, ts: float) -> bool:
        """
        Record ts and tell whether it closes the current timeslice.

        The first packet only establishes the boundary. A later packet
        past the boundary moves it to ts + timeslice and returns True.
        """
        if self.boundary is None:
            self.boundary = ts + self.timeslice
            return False
        if ts > self.boundary:
            self.boundary = ts + self.timeslice
            return True
        return False
