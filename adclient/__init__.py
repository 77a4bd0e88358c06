# Scripting client for the ad editor's 9P filesystem
from .client import AdClient
from .buffers import Buffer, BodyWriter
from .commands import (
    Command,
    EditScript,
    Echo,
    MarkClean,
    MinibufferPrompt,
    Open,
    OpenInNewWindow,
    Reload,
    UnknownCommand,
    encode_command,
    parse_command,
)
from .config import Config, in_editor_context
from .events import FilterOutcome, run_event_filter
from .log import LogStream
from .transport import Transport, NinepTransport
from .addr import AddrParseError, parse_addr

__all__ = [
    'AdClient',
    'Buffer',
    'BodyWriter',
    'Command',
    'EditScript',
    'Echo',
    'MarkClean',
    'MinibufferPrompt',
    'Open',
    'OpenInNewWindow',
    'Reload',
    'UnknownCommand',
    'encode_command',
    'parse_command',
    'Config',
    'in_editor_context',
    'FilterOutcome',
    'run_event_filter',
    'LogStream',
    'Transport',
    'NinepTransport',
    'AddrParseError',
    'parse_addr',
]
