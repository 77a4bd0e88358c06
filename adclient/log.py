"""
Following ad's event log.

Reads of `log` block until the editor has something new to report, so the
log is consumed as an endless stream. Events are handed over as the raw
bytes the editor wrote; no event format is assumed.

Usage:
    async with client.follow_log() as events:
        async for chunk in events:
            handle(chunk)

    # or line by line
    async for line in client.follow_log().lines():
        print(line)
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from .transport import Transport

logger = logging.getLogger(__name__)

LOG_PATH = "log"


class LogStream:
    """
    Lazy, non-restartable stream of log chunks.

    Nothing is opened until the first chunk is requested. aclose() (or
    leaving the async with block) abandons any read in flight and releases
    the file; after that, and after the editor ends the log, iteration
    stops for good.
    """

    def __init__(self, transport: Transport, path: str = LOG_PATH):
        self.transport = transport
        self.path = path
        self._chunks: Optional[AsyncIterator[bytes]] = None
        self._read: Optional[asyncio.Future] = None
        self._done = False

    @property
    def closed(self) -> bool:
        return self._done

    def __aiter__(self) -> 'LogStream':
        return self

    async def __anext__(self) -> bytes:
        if self._done:
            raise StopAsyncIteration

        if self._chunks is None:
            logger.debug(f"Following {self.path}")
            self._chunks = self.transport.stream(self.path).__aiter__()

        # The read runs as its own future so aclose() can abandon it
        # without cancelling the task that is iterating.
        self._read = asyncio.ensure_future(self._chunks.__anext__())
        try:
            return await self._read
        except StopAsyncIteration:
            self._done = True
            raise
        except asyncio.CancelledError:
            closing = self._done
            self._done = True
            if closing:
                raise StopAsyncIteration from None
            raise
        finally:
            self._read = None

    async def aclose(self):
        """Stop following the log"""
        if self._done:
            return
        self._done = True

        read = self._read
        if read is not None and not read.done():
            read.cancel()
            await asyncio.wait([read])

        if self._chunks is not None and hasattr(self._chunks, "aclose"):
            await self._chunks.aclose()
        logger.debug(f"Stopped following {self.path}")

    async def __aenter__(self) -> 'LogStream':
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def lines(self) -> AsyncIterator[str]:
        """
        Yield complete lines, decoded as UTF-8, without the newline.

        A partial line left over when the stream ends is yielded last.
        """
        pending = b""
        try:
            async for chunk in self:
                pending += chunk
                while b"\n" in pending:
                    line, pending = pending.split(b"\n", 1)
                    yield line.decode("utf-8", errors="replace")
            if pending:
                yield pending.decode("utf-8", errors="replace")
        finally:
            await self.aclose()
