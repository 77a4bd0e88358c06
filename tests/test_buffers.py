import asyncio

import pytest

from ninep import P9Error

from adclient import AdClient, Config
from adclient import addr
from adclient.buffers import Buffer, buffer_path

from fakead import FakeAd


@pytest.fixture
def fake():
    return FakeAd()


@pytest.fixture
def ad(fake):
    return AdClient(Config(editor_context_buffer_id="1"), fake)


def test_buffer_path():
    assert buffer_path(3, "xdot") == "buffers/3/xdot"
    assert buffer_path("12", "body") == "buffers/12/body"


def test_handles_compare_by_id(ad):
    assert ad.buffer(1) == ad.buffer("1")
    assert ad.buffer(1) != ad.buffer(2)
    assert len({ad.buffer(1), ad.buffer("1")}) == 1
    assert repr(ad.buffer(4)) == "Buffer('4')"


def test_read_files(ad):
    async def scenario():
        buf = ad.buffer(1)
        assert await buf.read_body() == "first line\nsecond line\n"
        assert await buf.read_filename() == "/home/me/notes.txt"

    asyncio.run(scenario())


def test_append_to_body(ad, fake):
    async def scenario():
        await ad.buffer(2).append_to_body("hello\n")
        await ad.buffer(2).append_to_body("world\n")
        assert await ad.buffer(2).read_body() == "hello\nworld\n"

    asyncio.run(scenario())


def test_replace_writes_xaddr_then_xdot(ad, fake):
    async def scenario():
        await ad.buffer(1).replace(addr.Compound(addr.line(2), addr.EOF), "new\n")

    asyncio.run(scenario())
    assert fake.writes == [
        ("buffers/1/xaddr", b"2,$"),
        ("buffers/1/xdot", b"new\n"),
    ]


def test_clear_empties_body(ad, fake):
    async def scenario():
        buf = ad.buffer(1)
        await buf.clear()
        assert await buf.read_body() == ""

    asyncio.run(scenario())
    assert fake.writes == [
        ("buffers/1/xaddr", b","),
        ("buffers/1/xdot", b""),
    ]


def test_write_xaddr_leaves_addr_alone(ad, fake):
    async def scenario():
        await ad.buffer(1).write_addr("3")
        await ad.buffer(1).write_xaddr(addr.regex("line"))

    asyncio.run(scenario())
    assert fake.buffers["1"].addr == "3"
    assert fake.buffers["1"].xaddr == "/line/"


def test_addresses_are_sent_unchecked(ad, fake):
    async def scenario():
        await ad.buffer(1).write_addr("definitely not an address")

    asyncio.run(scenario())
    assert fake.writes == [("buffers/1/addr", b"definitely not an address")]


def test_cursor_moves(ad, fake):
    async def scenario():
        await ad.buffer(1).cur_to_bof()
        await ad.buffer(1).cur_to_eof()

    asyncio.run(scenario())
    assert fake.writes == [("buffers/1/addr", b"0"), ("buffers/1/addr", b"$")]


def test_mark_clean_and_focus_go_through_client(ad, fake):
    async def scenario():
        buf = ad.buffer(2)
        await buf.mark_clean()
        await buf.focus()

    asyncio.run(scenario())
    assert fake.writes == [("ctl", b"mark-clean 2"), ("buffers/current", b"2")]
    assert fake.buffers["2"].dirty is False
    assert fake.current == "2"


def test_closed_buffer_fails_on_use(ad, fake):
    buf = ad.buffer(2)
    del fake.buffers["2"]

    with pytest.raises(P9Error):
        asyncio.run(buf.read_body())


def test_handle_is_standalone():
    buf = Buffer(None, 5)
    assert buf.id == "5"
