"""
Per-buffer files.

Each open buffer is a directory under buffers/:

    buffers/
    ├── index         # listing of open buffers
    ├── current       # id of the focused buffer
    └── <id>/
        ├── addr      # address of the editor's dot (cursor placement)
        ├── dot       # text of the editor's dot
        ├── xaddr     # address of the scripting selection
        ├── xdot      # text of the scripting selection
        ├── body      # whole content, writes append
        ├── event     # read: this buffer's input events; write: hand one back
        └── filename

xaddr/xdot are a second selection that belongs to scripts: moving and
replacing it leaves the user's own cursor alone. Replacing text is always
two steps: point xaddr at the range, then write the new text to xdot.

While a script holds `event` open, ad passes it the buffer's input events
instead of acting on them itself. Writing an event line back asks ad to
run its default handling for it.
"""

import logging
from typing import TYPE_CHECKING, AsyncIterator, Union

from . import addr
from .addr import AddrLike
from .log import LogStream

if TYPE_CHECKING:
    from .client import AdClient

logger = logging.getLogger(__name__)

BufferId = Union[str, int]

ADDR = "addr"
DOT = "dot"
XADDR = "xaddr"
XDOT = "xdot"
BODY = "body"
FILENAME = "filename"
EVENT = "event"


def buffer_path(buffer_id: BufferId, name: str) -> str:
    return f"buffers/{buffer_id}/{name}"


class Buffer:
    """
    Handle on one of ad's buffers.

    Holds only the id; every method is a fresh read or write, so a handle
    whose buffer has been closed fails on use with the transport's error.
    """

    def __init__(self, client: 'AdClient', buffer_id: BufferId):
        self.client = client
        self.id = str(buffer_id)

    def __repr__(self) -> str:
        return f"Buffer({self.id!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Buffer) and other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _read_text(self, name: str) -> str:
        data = await self.client.read_buffer_file(self.id, name)
        return data.decode("utf-8", errors="replace")

    async def read_body(self) -> str:
        return await self._read_text(BODY)

    async def read_dot(self) -> str:
        return await self._read_text(DOT)

    async def read_addr(self) -> str:
        return await self._read_text(ADDR)

    async def read_xaddr(self) -> str:
        """Read the scripting address; it never moves the user's cursor"""
        return await self._read_text(XADDR)

    async def read_xdot(self) -> str:
        return await self._read_text(XDOT)

    async def read_filename(self) -> str:
        return await self._read_text(FILENAME)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _write_text(self, name: str, text: str) -> int:
        return await self.client.write_buffer_file(self.id, name, text.encode("utf-8"))

    async def write_dot(self, text: str) -> int:
        """Replace the text of the editor's dot"""
        return await self._write_text(DOT, text)

    async def append_to_body(self, text: str) -> int:
        return await self._write_text(BODY, text)

    async def write_addr(self, address: AddrLike) -> int:
        """Set the editor's dot. The address is sent as-is, unchecked."""
        return await self.client.write_buffer_file(self.id, ADDR, addr.to_wire(address))

    async def write_xaddr(self, address: AddrLike) -> int:
        return await self.client.write_buffer_file(self.id, XADDR, addr.to_wire(address))

    async def write_xdot(self, text: str) -> int:
        """Replace the text currently selected by xaddr"""
        return await self._write_text(XDOT, text)

    async def replace(self, address: AddrLike, text: str):
        """
        Select address with xaddr, then replace the selection with text.

        Not atomic: another client moving xaddr between the two writes
        decides what gets replaced.
        """
        await self.write_xaddr(address)
        await self.write_xdot(text)

    async def clear(self):
        """Delete the whole content of the buffer (same race as replace)"""
        await self.replace(addr.WHOLE_FILE, "")

    async def cur_to_bof(self):
        await self.write_addr(addr.BOF)

    async def cur_to_eof(self):
        await self.write_addr(addr.EOF)

    async def mark_clean(self):
        await self.client.mark_clean(self.id)

    async def focus(self):
        await self.client.focus_buffer(self.id)

    def body_writer(self) -> 'BodyWriter':
        return BodyWriter(self)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def events(self) -> LogStream:
        """Raw stream of this buffer's event file"""
        return LogStream(self.client.transport, buffer_path(self.id, EVENT))

    def event_lines(self) -> AsyncIterator[str]:
        """Event lines without their newline; their format is ad's business"""
        return self.events().lines()

    async def write_event(self, line: str) -> int:
        """Hand an event line back to ad, sent as given"""
        return await self._write_text(EVENT, line)


class BodyWriter:
    """
    Appends to a buffer's body as output is produced.

        async with buf.body_writer() as out:
            async for chunk in process_output():
                await out.write(chunk)

    Every write is its own append; nothing is buffered, so ad shows the
    text as soon as write() returns.
    """

    def __init__(self, buffer: Buffer):
        self.buffer = buffer
        self.closed = False

    async def write(self, data: Union[str, bytes]) -> int:
        if self.closed:
            raise ValueError(f"write to closed body writer for {self.buffer!r}")
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not data:
            return 0
        return await self.buffer.client.write_buffer_file(self.buffer.id, BODY, data)

    async def writelines(self, lines):
        for line in lines:
            await self.write(line)

    async def close(self):
        self.closed = True

    async def __aenter__(self) -> 'BodyWriter':
        return self

    async def __aexit__(self, *args):
        await self.close()
