"""
Address expressions for ad's addr and xaddr files.

The syntax is adapted from the sam editor: an address names a position or
a range inside a buffer, either absolutely or relative to the current dot.
ad evaluates addresses; this module only builds and checks their text, so
an address that parses here can still be out of range for a given buffer.

Simple addresses:

    .      current dot
    -      extend dot back to the beginning of its line
    +      extend dot forward to the end of its line
    -+ +-  the whole current line
    0      beginning of file
    $      end of file
    n      line n
    +n -n  n lines forward / back from dot
    #n     character offset n
    +#n    n characters forward / back from dot (-#n)
    n:m    line n, column m
    /re/   next match of re (also +/re/)
    -/re/  previous match of re

A simple address may be followed by suffixes (-, +, -+, relative lines,
relative chars, regexes) applied left to right. Two simple addresses
joined by a comma form a range; a missing start means 0 and a missing end
means $, so "," alone is the whole file.

    str(parse_addr("-/\\s/+#1,/\\s/-#1"))   # round-trips the text
    str(Compound(line(3), EOF))             # "3,$"
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class AddrParseError(ValueError):
    """Text that is not a valid address expression"""
    pass


class AddrKind(Enum):
    CURRENT = "current"
    BOL = "bol"
    EOL = "eol"
    CURRENT_LINE = "current_line"
    BOF = "bof"
    EOF = "eof"
    LINE = "line"
    RELATIVE_LINE = "relative_line"
    CHAR = "char"
    RELATIVE_CHAR = "relative_char"
    LINE_AND_COLUMN = "line_and_column"
    REGEX = "regex"
    REGEX_BACK = "regex_back"


DIGITS = "0123456789"

# Kinds that may follow a base address
SUFFIX_KINDS = frozenset({
    AddrKind.BOL,
    AddrKind.EOL,
    AddrKind.CURRENT_LINE,
    AddrKind.RELATIVE_LINE,
    AddrKind.RELATIVE_CHAR,
    AddrKind.REGEX,
    AddrKind.REGEX_BACK,
})


@dataclass(frozen=True)
class AddrBase:
    """
    One address primitive.

    Line and column numbers are kept 1-based, as written. Relative
    offsets are signed.
    """
    kind: AddrKind
    n: int = 0
    column: int = 0
    pattern: str = ""

    def render(self, as_suffix: bool = False) -> str:
        k = self.kind
        if k is AddrKind.CURRENT:
            return "."
        if k is AddrKind.BOL:
            return "-"
        if k is AddrKind.EOL:
            return "+"
        if k is AddrKind.CURRENT_LINE:
            return "-+"
        if k is AddrKind.BOF:
            return "0"
        if k is AddrKind.EOF:
            return "$"
        if k is AddrKind.LINE:
            return str(self.n)
        if k is AddrKind.RELATIVE_LINE:
            return f"{'-' if self.n < 0 else '+'}{abs(self.n)}"
        if k is AddrKind.CHAR:
            return f"#{self.n}"
        if k is AddrKind.RELATIVE_CHAR:
            return f"{'-' if self.n < 0 else '+'}#{abs(self.n)}"
        if k is AddrKind.LINE_AND_COLUMN:
            return f"{self.n}:{self.column}"
        if k is AddrKind.REGEX:
            # Suffixes are introduced by a sign
            return f"{'+' if as_suffix else ''}/{self.pattern}/"
        return f"-/{self.pattern}/"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class SimpleAddr:
    base: AddrBase
    suffixes: Tuple[AddrBase, ...] = ()

    def __post_init__(self):
        for s in self.suffixes:
            if s.kind not in SUFFIX_KINDS:
                raise AddrParseError(f"{s.kind.value} cannot be used as a suffix")

    def __str__(self) -> str:
        return self.base.render() + "".join(s.render(as_suffix=True) for s in self.suffixes)


@dataclass(frozen=True)
class Compound:
    """A range from start to end; None means beginning/end of file"""
    start: Optional[SimpleAddr] = None
    end: Optional[SimpleAddr] = None

    def __str__(self) -> str:
        start = str(self.start) if self.start is not None else ""
        end = str(self.end) if self.end is not None else ""
        return f"{start},{end}"


Addr = Union[SimpleAddr, Compound]
AddrLike = Union[str, SimpleAddr, Compound, AddrBase]


# ── Constructors ────────────────────────────────────────────────

def _simple(kind: AddrKind, **kw) -> SimpleAddr:
    return SimpleAddr(AddrBase(kind, **kw))


CURRENT = _simple(AddrKind.CURRENT)
BOF = _simple(AddrKind.BOF)
EOF = _simple(AddrKind.EOF)
WHOLE_FILE = Compound()


def line(n: int) -> SimpleAddr:
    return _simple(AddrKind.LINE, n=n)


def char(n: int) -> SimpleAddr:
    return _simple(AddrKind.CHAR, n=n)


def line_and_column(n: int, column: int) -> SimpleAddr:
    return _simple(AddrKind.LINE_AND_COLUMN, n=n, column=column)


def regex(pattern: str, backwards: bool = False) -> SimpleAddr:
    kind = AddrKind.REGEX_BACK if backwards else AddrKind.REGEX
    return _simple(kind, pattern=pattern)


def to_wire(addr: AddrLike) -> bytes:
    """Bytes written to an addr/xaddr file; strings pass through as-is"""
    return str(addr).encode("utf-8")


# ── Parsing ─────────────────────────────────────────────────────

class _Chars:
    """Peekable cursor over the address text"""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def peek(self) -> Optional[str]:
        if self.pos < len(self.text):
            return self.text[self.pos]
        return None

    def next(self) -> Optional[str]:
        ch = self.peek()
        if ch is not None:
            self.pos += 1
        return ch

    def number(self) -> int:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in DIGITS:
            self.pos += 1
        return int(self.text[start:self.pos])


class _NotAnAddress(AddrParseError):
    pass


def _parse_regex(it: _Chars, backwards: bool) -> AddrBase:
    chars = []
    prev = "/"
    while True:
        ch = it.next()
        if ch is None:
            break
        if ch == "/" and prev != "\\":
            kind = AddrKind.REGEX_BACK if backwards else AddrKind.REGEX
            return AddrBase(kind, pattern="".join(chars))
        chars.append(ch)
        prev = ch
    raise AddrParseError("unclosed '/' delimiter in regex address")


def _parse_base(it: _Chars) -> AddrBase:
    sign = None
    if it.peek() in ("-", "+"):
        sign = it.next()

    ch = it.peek()

    if ch in (".", "0", "$") and sign:
        raise _NotAnAddress(f"'{ch}' cannot be relative")

    if (ch == "-" and sign == "+") or (ch == "+" and sign == "-"):
        it.next()
        return AddrBase(AddrKind.CURRENT_LINE)

    if ch == ".":
        it.next()
        return AddrBase(AddrKind.CURRENT)
    if ch == "0":
        it.next()
        return AddrBase(AddrKind.BOF)
    if ch == "$":
        it.next()
        return AddrBase(AddrKind.EOF)

    if ch == "#":
        it.next()
        if it.peek() is None or it.peek() not in DIGITS:
            raise _NotAnAddress("expected a character offset after '#'")
        n = it.number()
        if sign is None:
            return AddrBase(AddrKind.CHAR, n=n)
        return AddrBase(AddrKind.RELATIVE_CHAR, n=-n if sign == "-" else n)

    if ch is not None and ch in DIGITS:
        n = it.number()
        if it.peek() == ":":
            if sign:
                raise _NotAnAddress("line and column cannot be relative")
            it.next()
            col = it.next()
            if col is None:
                raise _NotAnAddress("expected a column after ':'")
            if col not in DIGITS:
                raise AddrParseError(f"unexpected character {col!r}")
            it.pos -= 1
            return AddrBase(AddrKind.LINE_AND_COLUMN, n=n, column=it.number())
        if sign is None:
            return AddrBase(AddrKind.LINE, n=n)
        return AddrBase(AddrKind.RELATIVE_LINE, n=-n if sign == "-" else n)

    if ch == "/":
        it.next()
        return _parse_regex(it, backwards=sign == "-")

    if sign == "+":
        return AddrBase(AddrKind.EOL)
    if sign == "-":
        return AddrBase(AddrKind.BOL)

    raise _NotAnAddress("not an address")


def _parse_simple(it: _Chars) -> SimpleAddr:
    base = _parse_base(it)
    suffixes = []
    while it.peek() in ("-", "+"):
        suffix = _parse_base(it)
        if suffix.kind not in SUFFIX_KINDS:
            raise AddrParseError(f"invalid suffix {suffix.render()!r}")
        suffixes.append(suffix)
    return SimpleAddr(base, tuple(suffixes))


def parse_addr(text: str) -> Addr:
    """
    Parse an address expression.

    The whole of text (ignoring surrounding whitespace) must be a single
    address. Raises AddrParseError otherwise.
    """
    it = _Chars(text.strip())

    start_pos = it.pos
    try:
        start: Optional[SimpleAddr] = _parse_simple(it)
    except _NotAnAddress:
        # A missing start is only allowed in front of ','
        it.pos = start_pos
        start = None

    if it.peek() == ",":
        it.next()
        end_pos = it.pos
        try:
            end: Optional[SimpleAddr] = _parse_simple(it)
        except _NotAnAddress:
            it.pos = end_pos
            end = None
        addr: Addr = Compound(start, end)
    elif start is None:
        raise AddrParseError(f"not an address: {text!r}")
    else:
        addr = start

    if it.peek() is not None:
        raise AddrParseError(f"unexpected character {it.peek()!r} in address {text!r}")

    return addr
