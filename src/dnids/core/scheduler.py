from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Optional

from .engine import TrafficAnalyzer
from .errors import CaptureError
from .link import DesmanLink
from .models import PacketDescriptor
from .replay import ReplayState

if TYPE_CHECKING:
    from dnids.capture.base import CaptureSource

logger = logging.getLogger(__name__)


class ReportScheduler:
    """
    Drives one TrafficAnalyzer from a capture source and ships its reports.

    Two tasks share the engine:
      capture   a daemon thread running source.run, feeding ingest
      reports   an asyncio task that produces or dequeues reports and sends them

    Live mode
      every timeslice of wall clock the report task closes the timeslice and
      sends the report. Runs until the process is killed or a send fails.

    Replay mode
      timeslices follow the trace timestamps. Reports are queued while the
      trace is read, then sent one per timeslice of wall clock until the
      queue is empty.

    Engine state is only touched under engine.lock. No socket I/O or logging
    happens while the lock is held. A packet racing with a live report may
    land in either timeslice.
    """

    def __init__(
        self,
        engine: TrafficAnalyzer,
        source: CaptureSource,
        link: DesmanLink,
        timeslice: float,
    ):
        self.engine = engine
        self.source = source
        self.link = link
        self.timeslice = float(timeslice)
        self.replay_state = ReplayState(timeslice=self.timeslice)

        self._capture_error: Optional[Exception] = None
        self._ingested = 0
        self._skipped = 0
        self._sent = 0

    def _ingest(self, packet: PacketDescriptor) -> None:
        if not packet.recognized:
            self._skipped += 1
            return
        self.engine.ingest(packet)
        self._ingested += 1

    def _on_replay_packet(self, packet: PacketDescriptor) -> None:
        closed = None
        with self.engine.lock:
            state = self.replay_state
            if packet.ts is not None and state.crosses(packet.ts):
                closed = self.engine.close_timeslice()
            self._ingest(packet)

        if closed is None:
            return
        text = self.engine.render(closed)
        with self.engine.lock:
            state.backlog.append(text)

    def _start_capture(self, on_packet) -> asyncio.Event:
        loop = asyncio.get_running_loop()
        done = asyncio.Event()

        def target() -> None:
            try:
                self.source.run(on_packet)
            except Exception as e:
                self._capture_error = e
            finally:
                loop.call_soon_threadsafe(done.set)

        threading.Thread(target=target, name=f"capture-{self.source.name}", daemon=True).start()
        return done

    def _raise_capture_error(self) -> None:
        err = self._capture_error
        if err is None:
            return
        if isinstance(err, CaptureError):
            raise err
        raise CaptureError(f"capture stopped: {err}") from err

    async def run(self) -> None:
        if self.source.replay:
            await self._run_replay()
        else:
            await self._run_live()

    async def _run_live(self) -> None:
        done = self._start_capture(self._ingest)
        while True:
            await asyncio.sleep(self.timeslice)
            if done.is_set():
                self._raise_capture_error()
                raise CaptureError(f"capture source {self.source.name} ended")

            report = self.engine.snapshot_and_report()
            await self.link.send(report)
            self._sent += 1

    async def _run_replay(self) -> None:
        done = self._start_capture(self._on_replay_packet)
        await done.wait()
        self._raise_capture_error()

        backlog = self.replay_state.backlog
        logger.info("Trace replayed, %d reports to send", len(backlog))

        while True:
            with self.engine.lock:
                if not backlog:
                    break
            await asyncio.sleep(self.timeslice)
            with self.engine.lock:
                report = backlog.popleft()
            await self.link.send(report)
            self._sent += 1

    def status(self) -> Dict[str, Any]:
        return {
            "source": self.source.name,
            "replay": self.source.replay,
            "timeslice": self.timeslice,
            "ingested": self._ingested,
            "skipped": self._skipped,
            "sent": self._sent,
            "backlog": len(self.replay_state.backlog),
            "capture": self.source.status(),
        }
