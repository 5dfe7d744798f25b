from __future__ import annotations

import asyncio
import enum
import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Tuple

import psutil

from .config import DesmanConfig
from .errors import AcceptError, AddressResolutionError, BindError, MalformedReport, SendError
from .protocol import (
    MAX_MESSAGE_SIZE,
    START,
    decode_line,
    encode_line,
    format_uid,
    parse_report,
    tag_with_agent,
)

logger = logging.getLogger(__name__)

LISTEN_BACKLOG = 10

# Events a session may have waiting for the collection loop. The reader
# stops reading while its inbox is full.
INBOX_SIZE = 1


class SessionState(enum.Enum):
    CONNECTING = "connecting"
    ASSIGNED = "assigned"
    STARTED = "started"
    REPORTING = "reporting"
    DISCONNECTED = "disconnected"


@dataclass
class SessionEvent:
    """
    What a session reader forwards to the collection loop.

    Exactly one of report or reason is set. reason means the session is lost.
    """

    agent_id: int
    report: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class AgentSession:
    """
    Desman side view of one watchdog.

    inbox
      Events read from this watchdog and not yet taken by a round, oldest
      first. Bounded by INBOX_SIZE, so a watchdog that runs ahead of the
      others is held back by TCP flow control, not buffered here.
    """

    agent_id: int
    address: str
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    state: SessionState = SessionState.CONNECTING
    inbox: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=INBOX_SIZE))
    task: Optional[asyncio.Task] = None

    @property
    def live(self) -> bool:
        return self.state is not SessionState.DISCONNECTED


def find_ip_address() -> str:
    """
    First IPv4 address of this host that is not loopback.
    """
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            try:
                if ipaddress.ip_address(addr.address).is_loopback:
                    continue
            except ValueError:
                continue
            return addr.address
    raise AddressResolutionError("no usable non loopback IPv4 address found")


class Desman:
    """
    Coordinator of a fixed set of watchdogs.

    Lifecycle:
      bind          listen on the configured or auto selected address
      accept_all    admit exactly config.watchdogs agents, ids 1..N in arrival order
      start         broadcast "start" and begin reading reports
      rounds        one batch of reports per round until every watchdog is gone

    Structural failures (bind, accept, start) raise. A single watchdog that
    disconnects, errors or sends garbage is logged and dropped, the others
    keep reporting.
    """

    def __init__(self, config: DesmanConfig):
        self.config = config
        self.address: Optional[Tuple[str, int]] = None
        self._listener: Optional[socket.socket] = None
        self._sessions: Dict[int, AgentSession] = {}
        self._live = 0
        # set by a reader whenever it fills an inbox
        self._wakeup = asyncio.Event()

    @property
    def live_count(self) -> int:
        return self._live

    @property
    def sessions(self) -> Dict[int, AgentSession]:
        return self._sessions

    def _live_sessions(self) -> List[AgentSession]:
        return [self._sessions[i] for i in sorted(self._sessions) if self._sessions[i].live]

    def bind(self) -> Tuple[str, int]:
        host = self.config.host or find_ip_address()
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, self.config.port))
            sock.listen(LISTEN_BACKLOG)
        except OSError as e:
            sock.close()
            raise BindError(f"cannot listen on {host}:{self.config.port}: {e}") from e

        sock.setblocking(False)
        self._listener = sock
        self.address = sock.getsockname()[:2]
        logger.info("Desman started on %s at port %d", self.address[0], self.address[1])
        return self.address

    async def accept_all(self) -> None:
        if self._listener is None:
            self.bind()

        loop = asyncio.get_running_loop()
        logger.info("Listening on port %d...", self.address[1])

        for agent_id in range(1, self.config.watchdogs + 1):
            try:
                conn, peer = await loop.sock_accept(self._listener)
            except OSError as e:
                raise AcceptError(f"error accepting connection to watchdog {agent_id}: {e}") from e

            ip = peer[0]
            logger.info("Incoming watchdog connection from IP %s", ip)

            try:
                reader, writer = await asyncio.open_connection(sock=conn, limit=MAX_MESSAGE_SIZE)
            except OSError as e:
                conn.close()
                raise AcceptError(f"error attaching watchdog {agent_id}: {e}") from e

            session = AgentSession(agent_id=agent_id, address=ip, reader=reader, writer=writer)
            self._sessions[agent_id] = session
            self._live += 1

            try:
                writer.write(encode_line(format_uid(agent_id)))
                await writer.drain()
            except OSError as e:
                raise AcceptError(f"error assigning id to watchdog {agent_id}: {e}") from e

            session.state = SessionState.ASSIGNED
            logger.info("Assigned %d to watchdog at IP %s", agent_id, ip)

        logger.info("All watchdogs connected...")

    async def broadcast(self, token: str = START) -> None:
        """
        Send token to every live watchdog, in id order.

        A failure stops the broadcast. Watchdogs already served keep what
        they received.
        """
        data = encode_line(token)
        for session in self._live_sessions():
            try:
                session.writer.write(data)
                await session.writer.drain()
            except OSError as e:
                raise SendError(f"error sending {token!r} to watchdog {session.agent_id}: {e}") from e

    async def start(self) -> None:
        logger.info("Issuing start monitoring...")
        await self.broadcast(START)
        for session in self._live_sessions():
            session.state = SessionState.STARTED
            session.task = asyncio.create_task(self._read_reports(session))

    async def _read_reports(self, session: AgentSession) -> None:
        """
        Forward every report line of one watchdog to the collection loop.

        Waits while the session inbox is full, which stops reading from the
        socket. Ends with exactly one loss event on EOF, read error, a line
        over MAX_MESSAGE_SIZE bytes, or anything that is not a valid report.
        """
        while True:
            try:
                line = await session.reader.readline()
            except ValueError:
                await self._emit_lost(session, f"message exceeds {MAX_MESSAGE_SIZE} bytes")
                return
            except OSError as e:
                await self._emit_lost(session, f"read error: {e}")
                return

            if not line:
                await self._emit_lost(session, "connection closed")
                return
            if not line.endswith(b"\n"):
                await self._emit_lost(session, "connection closed mid message")
                return
            # readline lets one byte past the stream limit through
            if len(line) > MAX_MESSAGE_SIZE:
                await self._emit_lost(session, f"message exceeds {MAX_MESSAGE_SIZE} bytes")
                return

            try:
                text = decode_line(line)
                parse_report(text)
            except (ValueError, MalformedReport) as e:
                await self._emit_lost(session, f"malformed report: {e}")
                return

            await self._emit(session, SessionEvent(agent_id=session.agent_id, report=text))

    async def _emit(self, session: AgentSession, event: SessionEvent) -> None:
        await session.inbox.put(event)
        self._wakeup.set()

    async def _emit_lost(self, session: AgentSession, reason: str) -> None:
        await self._emit(session, SessionEvent(agent_id=session.agent_id, reason=reason))

    def _deregister(self, session: AgentSession, reason: str) -> None:
        session.state = SessionState.DISCONNECTED
        self._live -= 1
        session.writer.close()
        logger.warning("Lost connection with watchdog %d (%s)", session.agent_id, reason)

    async def collect_round(self) -> Optional[List[str]]:
        """
        Wait until every live watchdog has either reported or been lost.

        Takes at most one event per watchdog. Anything a watchdog sends
        beyond that stays in its inbox or socket for the next round.

        Returns the reports of this round in the order they were taken, or
        None once the last watchdog is gone. Every wake up takes the events
        of all ready watchdogs before blocking again.
        """
        if self._live == 0:
            return None

        pending = {s.agent_id for s in self._live_sessions()}
        reports: List[str] = []

        while True:
            for agent_id in sorted(pending):
                session = self._sessions[agent_id]
                try:
                    event = session.inbox.get_nowait()
                except asyncio.QueueEmpty:
                    continue

                pending.discard(agent_id)

                if event.reason is not None:
                    self._deregister(session, event.reason)
                    if self._live == 0:
                        return None
                    continue

                session.state = SessionState.REPORTING
                reports.append(event.report)
                logger.info("Received %s", tag_with_agent(event.report, agent_id))

            if not pending:
                return reports

            self._wakeup.clear()
            await self._wakeup.wait()

    async def rounds(self) -> AsyncIterator[List[str]]:
        while True:
            batch = await self.collect_round()
            if batch is None:
                return
            yield batch

    async def close(self) -> None:
        tasks = [s.task for s in self._sessions.values() if s.task and not s.task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        for session in self._sessions.values():
            if session.live:
                session.state = SessionState.DISCONNECTED
                session.writer.close()
        self._live = 0

        if self._listener is not None:
            self._listener.close()
            self._listener = None
