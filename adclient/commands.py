"""
Control messages for ad's `ctl` file.

Each command is one line on the wire: the verb, then a single space and
the verb's argument text when it has one. Argument text is passed through
untouched; there is no quoting or escaping.

    encode_command(EditScript("x/foo/ d"))   # b"Edit x/foo/ d"
    encode_command(MarkClean("3"))           # b"mark-clean 3"
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Type


class UnknownCommand(ValueError):
    """A ctl line whose verb is not one of the known commands"""
    pass


@dataclass(frozen=True)
class Command(ABC):
    """Base control message"""

    @classmethod
    @abstractmethod
    def verb(cls) -> str:
        """Return the wire verb for this command"""
        pass

    @property
    def argument(self) -> str:
        return ""

    def to_line(self) -> str:
        arg = self.argument
        if arg:
            return f"{self.verb()} {arg}"
        return self.verb()


@dataclass(frozen=True)
class EditScript(Command):
    """Run an Edit script against the current buffer"""
    script: str

    @classmethod
    def verb(cls) -> str:
        return "Edit"

    @property
    def argument(self) -> str:
        return self.script


@dataclass(frozen=True)
class Echo(Command):
    """Show a message in the status line"""
    message: str

    @classmethod
    def verb(cls) -> str:
        return "echo"

    @property
    def argument(self) -> str:
        return self.message


@dataclass(frozen=True)
class MarkClean(Command):
    """Clear the dirty flag of a buffer"""
    buffer_id: str

    @classmethod
    def verb(cls) -> str:
        return "mark-clean"

    @property
    def argument(self) -> str:
        return str(self.buffer_id)


@dataclass(frozen=True)
class MinibufferPrompt(Command):
    """Label the minibuffer selection currently in flight"""
    text: str

    @classmethod
    def verb(cls) -> str:
        return "minibuffer-prompt"

    @property
    def argument(self) -> str:
        return self.text


@dataclass(frozen=True)
class Open(Command):
    """Open a file in the current window"""
    path: str

    @classmethod
    def verb(cls) -> str:
        return "open"

    @property
    def argument(self) -> str:
        return self.path


@dataclass(frozen=True)
class OpenInNewWindow(Command):
    """Open a file in a new window"""
    path: str

    @classmethod
    def verb(cls) -> str:
        return "open-in-new-window"

    @property
    def argument(self) -> str:
        return self.path


@dataclass(frozen=True)
class Reload(Command):
    """Reload the current buffer from disk"""

    @classmethod
    def verb(cls) -> str:
        return "reload"


COMMANDS: Dict[str, Type[Command]] = {
    cls.verb(): cls
    for cls in (EditScript, Echo, MarkClean, MinibufferPrompt, Open, OpenInNewWindow, Reload)
}


def encode_command(command: Command) -> bytes:
    """Serialize a command to the bytes written to ctl"""
    return command.to_line().encode("utf-8")


def parse_command(line: str) -> Command:
    """
    Parse a ctl line back into a Command.

    Only the first space separates verb from argument; the rest of the
    line is the argument verbatim.
    """
    verb, _, arg = line.partition(" ")
    cls = COMMANDS.get(verb)
    if cls is None:
        raise UnknownCommand(f"Unknown ctl command: {verb!r}")
    if cls is Reload:
        return Reload()
    return cls(arg)
