from __future__ import annotations

import logging
import threading
from typing import Dict, FrozenSet, Optional, Tuple

from .destination import DestinationTraffic
from .models import BYTES, FLOWS, PACKETS, PacketDescriptor, Report, TrafficTotals
from .protocol import compose_report

logger = logging.getLogger(__name__)

ALERT_RATIO = 3


def detect_alerts(current: TrafficTotals, previous: TrafficTotals) -> FrozenSet[str]:
    """
    Categories whose total is strictly more than ALERT_RATIO times the
    previous timeslice. A zero previous total makes any non zero value alert.
    """
    fired = set()
    if current.packets > previous.packets * ALERT_RATIO:
        fired.add(PACKETS)
    if current.bytes > previous.bytes * ALERT_RATIO:
        fired.add(BYTES)
    if current.flows > previous.flows * ALERT_RATIO:
        fired.add(FLOWS)
    return frozenset(fired)


class TrafficAnalyzer:
    """
    Per watchdog aggregation engine.

    Accumulates one timeslice of packets per destination, then reduces it
    to a single report compared against the previous timeslice.

    Main concepts:
      destinations
        dst address -> DestinationTraffic, created lazily, cleared on every report

      previous
        totals of the last reported timeslice, replaced on every report

      lock
        every mutating call holds it. Callers that need to combine a report
        with their own state (the replay scheduler) may hold it too, it is
        re-entrant.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._destinations: Dict[str, DestinationTraffic] = {}
        self._previous = TrafficTotals()
        self._reports_generated = 0

    @property
    def previous(self) -> TrafficTotals:
        return self._previous

    @property
    def destinations(self) -> Dict[str, DestinationTraffic]:
        return self._destinations

    def ingest(self, packet: PacketDescriptor) -> None:
        flow = packet.flow_key()
        with self.lock:
            traffic = self._destinations.get(packet.dst)
            if traffic is None:
                traffic = DestinationTraffic()
                self._destinations[packet.dst] = traffic
            traffic.add(packet.size, flow)

    def _summarize(self) -> Tuple[TrafficTotals, Dict[str, Optional[str]]]:
        """
        Sum all destinations and find the leading destination per metric.

        Ties keep the destination seen first in this timeslice.
        """
        packets = nbytes = flows = 0
        leaders: Dict[str, Optional[str]] = {PACKETS: None, BYTES: None, FLOWS: None}
        most = {PACKETS: 0, BYTES: 0, FLOWS: 0}

        for dst, traffic in self._destinations.items():
            packets += traffic.packets
            nbytes += traffic.bytes
            flows += traffic.flow_count

            for metric, value in (
                (PACKETS, traffic.packets),
                (BYTES, traffic.bytes),
                (FLOWS, traffic.flow_count),
            ):
                if value > most[metric]:
                    most[metric] = value
                    leaders[metric] = dst

        return TrafficTotals(packets, nbytes, flows), leaders

    def close_timeslice(self) -> Report:
        """
        Build the report for the current timeslice and roll state forward.

        Report then reset: previous totals are replaced and every destination
        is dropped in the same critical section that built the report.
        """
        with self.lock:
            self._reports_generated += 1
            totals, leaders = self._summarize()
            alerts = detect_alerts(totals, self._previous)

            destination = None
            for metric in (PACKETS, BYTES, FLOWS):
                if metric in alerts:
                    destination = leaders[metric]
                    break

            report = Report(
                seq=self._reports_generated,
                packets=totals.packets,
                bytes=totals.bytes,
                flows=totals.flows,
                alerts=alerts,
                destination=destination,
            )

            self._previous = totals
            self._destinations = {}

        return report

    def render(self, report: Report) -> str:
        """
        Compose the report text and log it. Never call with the lock held.
        """
        if report.alerts:
            logger.warning("alert %s", " ".join(m for m in (PACKETS, BYTES, FLOWS) if m in report.alerts))
        text = compose_report(report)
        logger.info(text)
        return text

    def snapshot_and_report(self) -> str:
        return self.render(self.close_timeslice())
