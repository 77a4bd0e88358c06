"""
The file transport the ad client runs on.

The client only ever needs three things from a transport: read a whole
file, write a payload to a file, and tail a file as a stream of chunks.
NinepTransport provides them over ad's 9P socket.
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

from ninep import P9Client, P9Error, OREAD

from .config import Config, parse_dial_string

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Read/write access to files under the editor's filesystem root"""

    @abstractmethod
    async def read(self, path: str) -> bytes:
        """Read path from offset 0 to EOF"""
        pass

    @abstractmethod
    async def write(self, path: str, data: bytes) -> int:
        """Write data to path in one open; an empty payload is still written"""
        pass

    @abstractmethod
    def stream(self, path: str) -> AsyncIterator[bytes]:
        """
        Tail path: yield each chunk as the server delivers it.

        Closing the iterator releases the file.
        """
        pass

    async def connect(self):
        pass

    async def close(self):
        pass


class NinepTransport(Transport):
    """Transport over a 9P2000 connection"""

    def __init__(self, p9: P9Client):
        self.p9 = p9

    @classmethod
    def from_config(cls, config: Config) -> 'NinepTransport':
        network, target, port = parse_dial_string(config.dial_address())
        if network == "unix":
            return cls(P9Client(socket_path=target))
        return cls(P9Client(host=target, port=port))

    async def connect(self):
        await self.p9.connect()

    async def read(self, path: str) -> bytes:
        logger.debug(f"read {path}")
        return await self.p9.read_path(path)

    async def write(self, path: str, data: bytes) -> int:
        logger.debug(f"write {path} ({len(data)} bytes)")
        return await self.p9.write_path(path, data)

    async def stream(self, path: str) -> AsyncIterator[bytes]:
        fid = await self.p9.walk_open(path, OREAD)
        logger.debug(f"streaming {path} (fid={fid.fid})")
        offset = 0
        try:
            while True:
                chunk = await self.p9.read(fid, offset)
                if not chunk:
                    logger.debug(f"EOF on {path}")
                    return
                offset += len(chunk)
                yield chunk
        finally:
            if self.p9.connected:
                try:
                    await self.p9.clunk(fid)
                except (P9Error, ConnectionError) as e:
                    logger.warning(f"Clunk of {path} failed: {e}")

    async def close(self):
        await self.p9.disconnect()
