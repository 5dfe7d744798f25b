from __future__ import annotations
from typing import Iterable

from .models import TrafficTotals
from .protocol import parse_report


def summarize_batch(reports: Iterable[str]) -> TrafficTotals:
    """
    Sum packets, bytes and flows over one collected round.

    The alert prefix and destination are ignored, only the counters matter.
    Reports reaching here were already validated by the desman, so a
    MalformedReport is a programming error and is left to propagate.
    """
    total = TrafficTotals()
    for text in reports:
        total = total + parse_report(text).totals
    return total
