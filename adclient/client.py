"""
adclient.client - Scripting client for the ad editor

ad serves its whole state as a filesystem:

    ad/
    ├── ctl           # write control commands
    ├── log           # read: endless stream of buffer events
    ├── minibuffer    # write candidates, then read the user's choice
    └── buffers/
        ├── index
        ├── current
        └── <id>/...  # see adclient.buffers

Every method here is one short sequence of reads and writes on those
files. Nothing is cached and nothing is retried: errors from the
transport (ninep.P9Error, ninep.P9ConnectionError) reach the caller as
they are.

Usage:
    async with AdClient() as ad:
        await ad.require_ad()
        buf = ad.buffer(ad.config.editor_context_buffer_id)
        await buf.clear()
        await buf.append_to_body("hello\\n")
        choice = await ad.minibuffer_select(["alpha", "beta"], prompt="pick one")
"""

import logging
from typing import Iterable, Optional

from .buffers import Buffer, BodyWriter, BufferId, buffer_path
from .commands import (
    Command,
    EditScript,
    Echo,
    MarkClean,
    MinibufferPrompt,
    Open,
    OpenInNewWindow,
    Reload,
    encode_command,
)
from .config import Config, in_editor_context
from .events import EventHandler, run_event_filter
from .log import LogStream
from .transport import NinepTransport, Transport

logger = logging.getLogger(__name__)

CTL = "ctl"
INDEX = "buffers/index"
CURRENT = "buffers/current"
MINIBUFFER = "minibuffer"

NOT_IN_AD = "need to be run from inside of ad"


class AdClient:
    """High-level client for ad's filesystem"""

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[Transport] = None,
    ):
        self.config = config or Config.from_env()
        self.transport = transport or NinepTransport.from_config(self.config)

    async def connect(self):
        """Connect to ad's 9P socket"""
        await self.transport.connect()

    async def close(self):
        await self.transport.close()

    async def __aenter__(self) -> 'AdClient':
        await self.connect()
        return self

    async def __aexit__(self, *args):
        await self.close()

    # -------------------------------------------------------------------------
    # Control channel
    # -------------------------------------------------------------------------

    async def send_control(self, command: str):
        """Write command to ctl exactly as given"""
        logger.debug(f"ctl: {command!r}")
        await self.transport.write(CTL, command.encode("utf-8"))

    async def ctl(self, command: Command):
        logger.debug(f"ctl: {command}")
        await self.transport.write(CTL, encode_command(command))

    async def edit(self, script: str):
        """Run an Edit script against the current buffer"""
        await self.ctl(EditScript(script))

    async def echo(self, message: str):
        """Show message in the status line"""
        await self.ctl(Echo(message))

    async def mark_clean(self, buffer_id: BufferId):
        await self.ctl(MarkClean(str(buffer_id)))

    async def open(self, path: str):
        await self.ctl(Open(path))

    async def open_in_new_window(self, path: str):
        await self.ctl(OpenInNewWindow(path))

    async def reload_current_buffer(self):
        await self.ctl(Reload())

    async def report_error(self, message: str):
        """Show message in the status line and exit with status 1"""
        logger.error(message)
        await self.echo(message)
        raise SystemExit(1)

    async def require_ad(self):
        """
        Exit unless this process was launched from inside ad.

        Must run before anything else that relies on the editor context.
        """
        if not in_editor_context(self.config):
            await self.report_error(NOT_IN_AD)

    # -------------------------------------------------------------------------
    # Buffers
    # -------------------------------------------------------------------------

    async def list_buffers(self) -> bytes:
        """Raw contents of buffers/index"""
        return await self.transport.read(INDEX)

    async def current_buffer_id(self) -> str:
        data = await self.transport.read(CURRENT)
        return data.decode("utf-8").strip()

    async def focus_buffer(self, buffer_id: BufferId):
        """Focus a buffer; ad decides what happens for an unknown id"""
        await self.transport.write(CURRENT, str(buffer_id).encode("utf-8"))

    def buffer(self, buffer_id: BufferId) -> Buffer:
        return Buffer(self, buffer_id)

    async def current_buffer(self) -> Buffer:
        return Buffer(self, await self.current_buffer_id())

    async def read_buffer_file(self, buffer_id: BufferId, name: str) -> bytes:
        return await self.transport.read(buffer_path(buffer_id, name))

    async def write_buffer_file(self, buffer_id: BufferId, name: str, data: bytes) -> int:
        return await self.transport.write(buffer_path(buffer_id, name), data)

    async def clear_buffer(self, buffer_id: BufferId):
        """
        Delete the whole content of a buffer.

        Two writes: "," to xaddr, then nothing to xdot. A concurrent
        writer moving xaddr in between changes what gets deleted.
        """
        await self.buffer(buffer_id).clear()

    async def cur_to_bof(self, buffer_id: BufferId):
        """Move the cursor to the beginning of the file"""
        await self.buffer(buffer_id).cur_to_bof()

    async def cur_to_eof(self, buffer_id: BufferId):
        """Move the cursor to the end of the file"""
        await self.buffer(buffer_id).cur_to_eof()

    # -------------------------------------------------------------------------
    # Log, events and minibuffer
    # -------------------------------------------------------------------------

    def follow_log(self) -> LogStream:
        """Stream of events from the log, starting from now"""
        return LogStream(self.transport)

    async def run_event_filter(self, buffer_id: BufferId, handler: EventHandler) -> int:
        """Intercept a buffer's input events; see adclient.events"""
        return await run_event_filter(self.buffer(buffer_id), handler)

    def body_writer(self, buffer_id: BufferId) -> BodyWriter:
        return self.buffer(buffer_id).body_writer()

    async def minibuffer_select(
        self,
        candidates: Iterable[str],
        prompt: Optional[str] = None,
    ) -> Optional[str]:
        """
        Let the user pick one of candidates in the minibuffer.

        Blocks until the user chooses. Returns the chosen line, or None if
        the selection was cancelled.
        """
        lines = "\n".join(candidates)
        await self.transport.write(MINIBUFFER, lines.encode("utf-8"))

        # Prompt must land between the candidate write and the read
        if prompt:
            await self.ctl(MinibufferPrompt(prompt))

        data = await self.transport.read(MINIBUFFER)
        selection = data.decode("utf-8").rstrip("\n")
        if not selection:
            return None
        return selection

