from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .errors import ConnectError, DisconnectSignal, RecvError, SendError
from .protocol import MAX_MESSAGE_SIZE, START, decode_line, encode_line, parse_uid

logger = logging.getLogger(__name__)


class DesmanLink:
    """
    Watchdog side of the persistent connection to the desman.

    Sequence:
      connect     -> receives "UID <n>"
      wait_start  -> receives "start"
      send        -> one report per call, until the process ends
    """

    def __init__(self) -> None:
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self.agent_id: Optional[int] = None

    async def connect(self, host: str, port: int) -> int:
        logger.info("Connecting to desman at %s...", host)
        try:
            self._reader, self._writer = await asyncio.open_connection(
                host, port, limit=MAX_MESSAGE_SIZE
            )
        except OSError as e:
            raise ConnectError(f"cannot connect to desman at {host}:{port}: {e}") from e

        self.agent_id = parse_uid(await self._recv())
        logger.info("Received %d", self.agent_id)
        return self.agent_id

    async def wait_start(self) -> None:
        msg = await self._recv()
        if msg != START:
            raise RecvError(f"expected {START!r}, got {msg!r}")
        logger.info("Received start...")

    async def _recv(self) -> str:
        if self._reader is None:
            raise RecvError("not connected")
        try:
            line = await self._reader.readline()
        except ValueError as e:
            raise RecvError(f"message exceeds {MAX_MESSAGE_SIZE} bytes") from e
        except OSError as e:
            raise RecvError(f"error receiving from desman: {e}") from e

        if not line.endswith(b"\n"):
            raise DisconnectSignal("desman closed the connection")
        if len(line) > MAX_MESSAGE_SIZE:
            raise RecvError(f"message exceeds {MAX_MESSAGE_SIZE} bytes")
        try:
            return decode_line(line)
        except ValueError as e:
            raise RecvError(f"undecodable message from desman: {line!r}") from e

    async def send(self, text: str) -> None:
        if self._writer is None:
            raise SendError("not connected")
        try:
            data = encode_line(text)
        except ValueError as e:
            raise SendError(f"cannot frame report: {e}") from e
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            raise SendError(f"error sending report to desman: {e}") from e

    async def close(self) -> None:
        if self._writer is None:
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass
        self._writer = None
        self._reader = None
