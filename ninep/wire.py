"""
ninep.wire — 9P2000 wire format for the client side.

Builds the T-messages an ad client needs and pulls fields out of the
R-messages that come back. Works on raw bytes with struct; no message
objects are materialised, file data is passed through untouched.

9P2000 message format:
    size[4] type[1] tag[2] ... (type-specific fields)

Where size includes itself (minimum 7 bytes for header).

Messages used by the client:
    100 Tversion  101 Rversion
    104 Tattach   105 Rattach
    107 Rerror
    108 Tflush    109 Rflush
    110 Twalk     111 Rwalk
    112 Topen     113 Ropen
    116 Tread     117 Rread
    118 Twrite    119 Rwrite
    120 Tclunk    121 Rclunk
"""

import struct
from typing import List, Tuple

# 9P2000 message types
TVERSION = 100; RVERSION = 101
TATTACH  = 104; RATTACH  = 105
RERROR   = 107  # Note: no TERROR (106)
TFLUSH   = 108; RFLUSH   = 109
TWALK    = 110; RWALK    = 111
TOPEN    = 112; ROPEN    = 113
TREAD    = 116; RREAD    = 117
TWRITE   = 118; RWRITE   = 119
TCLUNK   = 120; RCLUNK   = 121

# Open modes
OREAD = 0
OWRITE = 1
ORDWR = 2
OTRUNC = 0x10

NOTAG = 0xFFFF
NOFID = 0xFFFFFFFF

VERSION = "9P2000"

HEADER_SIZE = 7
QID_SIZE = 13

# Twrite header: size[4] type[1] tag[2] fid[4] offset[8] count[4]
TWRITE_OVERHEAD = 23
# Rread header: size[4] type[1] tag[2] count[4]
RREAD_OVERHEAD = 11

MSG_NAMES = {
    100: "Tversion", 101: "Rversion",
    104: "Tattach",  105: "Rattach",
    107: "Rerror",
    108: "Tflush",   109: "Rflush",
    110: "Twalk",    111: "Rwalk",
    112: "Topen",    113: "Ropen",
    116: "Tread",    117: "Rread",
    118: "Twrite",   119: "Rwrite",
    120: "Tclunk",   121: "Rclunk",
}


def msg_name(mtype: int) -> str:
    return MSG_NAMES.get(mtype, f"Unknown({mtype})")


# ── Framing ─────────────────────────────────────────────────────

def get_type(data: bytes) -> int:
    """Read message type from offset 4."""
    return data[4]


def get_tag(data: bytes) -> int:
    """Read tag from offset 5."""
    return struct.unpack_from('<H', data, 5)[0]


def pack_str(s: str) -> bytes:
    """Pack string with 2-byte length prefix"""
    b = s.encode('utf-8')
    return struct.pack('<H', len(b)) + b


def unpack_str(data: bytes, pos: int) -> Tuple[str, int]:
    """Unpack string, returns (string, new_position)"""
    slen = struct.unpack_from('<H', data, pos)[0]
    s = data[pos + 2:pos + 2 + slen].decode('utf-8', errors='replace')
    return s, pos + 2 + slen


def _frame(mtype: int, tag: int, body: bytes) -> bytes:
    return struct.pack('<IBH', HEADER_SIZE + len(body), mtype, tag) + body


# ── T-message builders ──────────────────────────────────────────

def build_tversion(msize: int, version: str = VERSION) -> bytes:
    """Build a Tversion (always tagged NOTAG)."""
    return _frame(TVERSION, NOTAG, struct.pack('<I', msize) + pack_str(version))


def build_tattach(tag: int, fid: int, uname: str, aname: str = "",
                  afid: int = NOFID) -> bytes:
    body = struct.pack('<II', fid, afid) + pack_str(uname) + pack_str(aname)
    return _frame(TATTACH, tag, body)


def build_twalk(tag: int, fid: int, newfid: int, names: List[str]) -> bytes:
    body = struct.pack('<IIH', fid, newfid, len(names))
    for name in names:
        body += pack_str(name)
    return _frame(TWALK, tag, body)


def build_topen(tag: int, fid: int, mode: int) -> bytes:
    return _frame(TOPEN, tag, struct.pack('<IB', fid, mode))


def build_tread(tag: int, fid: int, offset: int, count: int) -> bytes:
    return _frame(TREAD, tag, struct.pack('<IQI', fid, offset, count))


def build_twrite(tag: int, fid: int, offset: int, data: bytes) -> bytes:
    return _frame(TWRITE, tag, struct.pack('<IQI', fid, offset, len(data)) + data)


def build_tclunk(tag: int, fid: int) -> bytes:
    return _frame(TCLUNK, tag, struct.pack('<I', fid))


def build_tflush(tag: int, oldtag: int) -> bytes:
    return _frame(TFLUSH, tag, struct.pack('<H', oldtag))


# ── R-message parsers ───────────────────────────────────────────
#
# All offsets are from the start of the message (including the 4-byte size).

def parse_rversion(data: bytes) -> Tuple[int, str]:
    """Rversion: msize[4] version[s]. Returns (msize, version)."""
    msize = struct.unpack_from('<I', data, 7)[0]
    version, _ = unpack_str(data, 11)
    return msize, version


def parse_rerror(data: bytes) -> str:
    """Rerror: ename[s]"""
    ename, _ = unpack_str(data, 7)
    return ename


def parse_rwalk(data: bytes) -> List[bytes]:
    """Rwalk: nwqid[2] nwqid*(qid[13]). Returns the raw qids."""
    nwqid = struct.unpack_from('<H', data, 7)[0]
    offset = 9
    qids = []
    for _ in range(nwqid):
        qids.append(bytes(data[offset:offset + QID_SIZE]))
        offset += QID_SIZE
    return qids


def parse_ropen(data: bytes) -> Tuple[bytes, int]:
    """Ropen: qid[13] iounit[4]. Returns (qid, iounit)."""
    qid = bytes(data[7:7 + QID_SIZE])
    iounit = struct.unpack_from('<I', data, 7 + QID_SIZE)[0]
    return qid, iounit


def parse_rread(data: bytes) -> bytes:
    """Rread: count[4] data[count]"""
    count = struct.unpack_from('<I', data, 7)[0]
    return bytes(data[11:11 + count])


def parse_rwrite(data: bytes) -> int:
    """Rwrite: count[4]"""
    return struct.unpack_from('<I', data, 7)[0]
