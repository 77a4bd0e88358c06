"""
ninep.client - Async 9P2000 client for talking to ad

ad serves its state as a 9P filesystem on a Unix socket in the plan9port
namespace directory. This client speaks just enough 9P2000 to walk to a
file, open it, read or write it and clunk it again, over either that
Unix socket or a TCP address.

Every open allocates a fresh fid. Several RPCs may be in flight on one
connection at once (a blocking Tread on `log` next to a Twrite to `ctl`);
a background reader task hands each response to the caller waiting on its
tag.

Usage:
    client = P9Client(socket_path="/tmp/ns.me.:0/ad")
    await client.connect()

    data = await client.read_path("buffers/index")
    await client.write_path("ctl", b"echo hello")

    await client.disconnect()
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from . import wire

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class P9Error(Exception):
    """Error from 9P server (Rerror message)"""
    pass


class P9ConnectionError(ConnectionError):
    """Connection to 9P server missing or lost"""
    pass


# =============================================================================
# Client
# =============================================================================

@dataclass
class Fid:
    """File identifier"""
    fid: int
    path: str = ""
    qid: Optional[bytes] = None
    iounit: int = 0


class P9Client:
    """
    Low-level async 9P2000 client.

    Handles the 9P wire protocol over TCP or a Unix domain socket.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5640,
        socket_path: Optional[str] = None,
        uname: str = "ad",
        aname: str = "",
        msize: int = 8192,
    ):
        self.host = host
        self.port = port
        self.socket_path = socket_path
        self.uname = uname
        self.aname = aname
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.msize = msize
        self._tag = 0
        self._next_fid_num = 1
        self._root_fid = 0
        self._open_fids: Dict[int, Fid] = {}
        self._write_lock = asyncio.Lock()   # Serializes sends on the socket
        self._pending: Dict[int, asyncio.Future] = {}  # tag -> Future for response
        self._reader_task: Optional[asyncio.Task] = None
        self._flushes: Set[asyncio.Task] = set()  # Tflush in flight for abandoned tags

    @property
    def address(self) -> str:
        if self.socket_path:
            return f"unix!{self.socket_path}"
        return f"tcp!{self.host}!{self.port}"

    # -------------------------------------------------------------------------
    # Connection Management
    # -------------------------------------------------------------------------

    async def connect(self):
        """Connect to 9P server and perform handshake"""
        try:
            if self.socket_path:
                self.reader, self.writer = await asyncio.open_unix_connection(
                    self.socket_path
                )
            else:
                self.reader, self.writer = await asyncio.open_connection(
                    self.host, self.port
                )
                # Disable Nagle for low latency
                sock = self.writer.get_extra_info('socket')
                if sock:
                    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            raise P9ConnectionError(f"Cannot connect to {self.address}: {e}") from e

        # Protocol version negotiation (before reader task starts)
        await self._version()

        # Start background reader that demuxes responses by tag
        self._reader_task = asyncio.ensure_future(self._reader_loop())

        # Attach to filesystem root
        await self._attach()

        logger.info(f"Connected to {self.address} (msize={self.msize})")

    async def disconnect(self):
        """Close connection, failing any RPC still waiting"""
        if self.writer is None:
            return

        # Stop reader task
        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        # Cancel any pending RPCs
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(P9ConnectionError("Connection closed"))
        self._pending.clear()

        # Flushes are moot once the connection goes
        flushes = list(self._flushes)
        for task in flushes:
            task.cancel()
        if flushes:
            await asyncio.gather(*flushes, return_exceptions=True)
        self._flushes.clear()

        # Fids die with the connection, no need to clunk them
        self._open_fids.clear()

        try:
            self.writer.close()
            await self.writer.wait_closed()
        except OSError as e:
            logger.warning(f"Error closing {self.address}: {e}")

        self.reader = None
        self.writer = None
        logger.info(f"Disconnected from {self.address}")

    @property
    def connected(self) -> bool:
        """Check if connected"""
        return self.writer is not None and not self.writer.is_closing()

    # -------------------------------------------------------------------------
    # High-Level Operations
    # -------------------------------------------------------------------------

    async def walk_open(self, path: str, mode: int = wire.OREAD) -> Fid:
        """
        Walk to path and open it.

        Args:
            path: Path relative to root (e.g., "buffers/1/xdot")
            mode: Open mode (OREAD, OWRITE, ORDWR)

        Returns:
            Fid object, to be released with clunk()
        """
        fid = self._alloc_fid(path)
        elements = [e for e in path.split("/") if e]

        qids = await self._walk(self._root_fid, fid.fid, elements)
        if len(qids) != len(elements):
            # Partial walk: newfid was never created on the server
            missing = elements[len(qids)]
            raise P9Error(f"{path}: '{missing}' not found")
        if qids:
            fid.qid = qids[-1]

        try:
            fid.qid, fid.iounit = await self._open(fid.fid, mode)
        except Exception:
            await self._clunk_quietly(fid)
            raise

        self._open_fids[fid.fid] = fid
        return fid

    async def read(self, fid: Fid, offset: int, count: int = 0) -> bytes:
        """
        Read from an open file.

        Args:
            fid: File identifier
            offset: Byte offset to read from
            count: Maximum bytes to read (0 = largest that fits in msize)

        Returns:
            Data read (may be shorter than count, empty on EOF)
        """
        limit = fid.iounit or (self.msize - wire.RREAD_OVERHEAD)
        if count <= 0 or count > limit:
            count = limit

        response = await self._rpc(wire.build_tread(self._next_tag(), fid.fid, offset, count))
        return wire.parse_rread(response)

    async def read_all(self, fid: Fid) -> bytes:
        """Read from offset 0 until EOF"""
        data = []
        offset = 0

        while True:
            chunk = await self.read(fid, offset)
            if not chunk:
                break
            data.append(chunk)
            offset += len(chunk)

        return b"".join(data)

    async def write(self, fid: Fid, offset: int, data: bytes) -> int:
        """
        Write to an open file.

        Args:
            fid: File identifier
            offset: Byte offset to write to
            data: Data to write (must fit in a single 9P message, may be empty)

        Returns:
            Number of bytes written
        """
        response = await self._rpc(wire.build_twrite(self._next_tag(), fid.fid, offset, data))
        return wire.parse_rwrite(response)

    async def write_all(self, fid: Fid, offset: int, data: bytes) -> int:
        """
        Write all data, chunking if necessary to fit within msize.

        An empty payload is still sent as a single zero-length Twrite. When
        the server accepts only part of a chunk the rest is sent again from
        where it stopped.

        Returns:
            Total number of bytes written (always len(data))
        """
        max_chunk = fid.iounit or (self.msize - wire.TWRITE_OVERHEAD)
        if not data:
            return await self.write(fid, offset, b"")

        total = 0
        while data:
            written = await self.write(fid, offset + total, data[:max_chunk])
            if written <= 0:
                raise P9Error(
                    f"{fid.path}: write stalled with {len(data)} bytes left"
                )
            data = data[written:]
            total += written
        return total

    async def clunk(self, fid: Fid):
        """Release a fid obtained from walk_open"""
        self._open_fids.pop(fid.fid, None)
        await self._rpc(wire.build_tclunk(self._next_tag(), fid.fid))

    async def read_path(self, path: str) -> bytes:
        """Open path, read it to EOF and clunk it"""
        fid = await self.walk_open(path, wire.OREAD)
        try:
            return await self.read_all(fid)
        finally:
            await self._clunk_quietly(fid)

    async def write_path(self, path: str, data: bytes) -> int:
        """Open path for writing, write data at offset 0 and clunk it"""
        fid = await self.walk_open(path, wire.OWRITE)
        try:
            return await self.write_all(fid, 0, data)
        finally:
            await self._clunk_quietly(fid)

    async def flush(self, oldtag: int):
        """Ask the server to abandon the request tagged oldtag"""
        await self._rpc(wire.build_tflush(self._next_tag(), oldtag))

    # -------------------------------------------------------------------------
    # 9P Protocol Primitives
    # -------------------------------------------------------------------------

    async def _version(self):
        """Negotiate protocol version (called before reader loop starts)"""
        response = await self._rpc_inline(wire.build_tversion(self.msize))

        server_msize, version = wire.parse_rversion(response)
        if not version.startswith(wire.VERSION):
            raise P9ConnectionError(f"Unsupported protocol version: {version}")
        self.msize = min(self.msize, server_msize)

    async def _attach(self):
        """Attach to filesystem root"""
        await self._rpc(wire.build_tattach(
            self._next_tag(), self._root_fid, self.uname, self.aname
        ))

    async def _walk(self, fid: int, newfid: int, wnames: List[str]) -> List[bytes]:
        """Walk from fid to newfid following wnames"""
        response = await self._rpc(wire.build_twalk(self._next_tag(), fid, newfid, wnames))
        return wire.parse_rwalk(response)

    async def _open(self, fid: int, mode: int):
        """Open a file, returns (qid, iounit)"""
        response = await self._rpc(wire.build_topen(self._next_tag(), fid, mode))
        return wire.parse_ropen(response)

    async def _clunk_quietly(self, fid: Fid):
        """Clunk during cleanup: never masks the error already in flight"""
        if not self.connected:
            self._open_fids.pop(fid.fid, None)
            return
        try:
            await self.clunk(fid)
        except (P9Error, ConnectionError) as e:
            logger.warning(f"Clunk of {fid.path} (fid={fid.fid}) failed: {e}")

    # -------------------------------------------------------------------------
    # Wire Protocol
    # -------------------------------------------------------------------------

    def _alloc_fid(self, path: str) -> Fid:
        """Allocate a new fid"""
        fid_num = self._next_fid_num
        self._next_fid_num += 1
        return Fid(fid_num, path)

    def _next_tag(self) -> int:
        """Get next tag not currently in flight"""
        while True:
            self._tag = (self._tag + 1) & 0x7FFF
            if self._tag not in self._pending:
                return self._tag

    async def _rpc(self, message: bytes) -> bytes:
        """Send a T-message and wait for its R-message.

        Uses tag-based demultiplexing so multiple RPCs can be in-flight
        concurrently (e.g. a blocking Tread on log + a Twrite to ctl).

        If the waiting caller is cancelled, a Tflush is sent for the tag
        so the server can drop the request. The tag is not reused before
        the Rflush comes back; a late reply to it is dropped.
        """
        if not self.connected:
            raise P9ConnectionError("Not connected to 9P server")

        tag = wire.get_tag(message)
        mtype = wire.get_type(message)

        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        self._pending[tag] = fut
        reserved = False

        try:
            async with self._write_lock:
                self.writer.write(message)
                await self.writer.drain()
            logger.debug(f"→ {wire.msg_name(mtype)} tag={tag}")

            response = await fut
        except asyncio.CancelledError:
            if mtype != wire.TFLUSH and self.connected:
                # The tag stays taken until its Rflush arrives
                reserved = True
                task = asyncio.ensure_future(self._flush_abandoned(tag))
                self._flushes.add(task)
                task.add_done_callback(self._flushes.discard)
            raise
        except OSError as e:
            raise P9ConnectionError(f"Connection to {self.address} lost: {e}") from e
        finally:
            if not reserved:
                self._pending.pop(tag, None)

        rtype = wire.get_type(response)
        logger.debug(f"← {wire.msg_name(rtype)} tag={tag}")
        if rtype == wire.RERROR:
            raise P9Error(wire.parse_rerror(response))
        if rtype != mtype + 1:
            raise P9Error(
                f"Unexpected {wire.msg_name(rtype)} in reply to {wire.msg_name(mtype)}"
            )
        return response

    async def _flush_abandoned(self, oldtag: int):
        try:
            await self.flush(oldtag)
            logger.debug(f"Flushed tag={oldtag}")
        except (P9Error, ConnectionError) as e:
            logger.warning(f"Flush of tag={oldtag} failed: {e}")
        finally:
            # Only now may oldtag be handed out again
            self._pending.pop(oldtag, None)

    async def _rpc_inline(self, message: bytes) -> bytes:
        """Send T-message and read R-message inline (before reader loop starts).

        Used only during version negotiation when no reader task is running.
        """
        self.writer.write(message)
        await self.writer.drain()

        try:
            response = await self._read_message()
        except asyncio.IncompleteReadError as e:
            raise P9ConnectionError("Connection closed during version negotiation") from e

        if wire.get_type(response) == wire.RERROR:
            raise P9Error(wire.parse_rerror(response))
        return response

    async def _reader_loop(self):
        """Background task: read responses and dispatch by tag."""
        try:
            while self.connected:
                response = await self._read_message()
                resp_tag = wire.get_tag(response)

                # Deliver to waiting future
                fut = self._pending.get(resp_tag)
                if fut and not fut.done():
                    fut.set_result(response)
                else:
                    # Flushed or late response
                    logger.debug(
                        f"Dropping {wire.msg_name(wire.get_type(response))} "
                        f"for unknown tag={resp_tag}"
                    )
        except asyncio.CancelledError:
            raise
        except (asyncio.IncompleteReadError, OSError) as e:
            logger.info(f"Connection to {self.address} closed by server")
            self.writer.close()
            error = P9ConnectionError(f"Connection to {self.address} lost: {e}")
            for fut in self._pending.values():
                if not fut.done():
                    fut.set_exception(error)

    async def _read_message(self) -> bytes:
        """Read one complete message, size prefix included"""
        size_bytes = await self.reader.readexactly(4)
        size = int.from_bytes(size_bytes, "little")
        body = await self.reader.readexactly(size - 4)
        return size_bytes + body
