"""
AdClient against the in-memory FakeAd filesystem.
"""

import asyncio

import pytest

from ninep import P9Error

from adclient import AdClient, Config
from adclient.client import NOT_IN_AD
from adclient.commands import EditScript, Echo, MinibufferPrompt, Open, OpenInNewWindow, Reload

from fakead import FakeAd


@pytest.fixture
def fake():
    return FakeAd()


def make_client(fake, bufid="1"):
    return AdClient(Config(editor_context_buffer_id=bufid), fake)


# ── Control channel ─────────────────────────────────────────────

def test_ctl_verbs(fake):
    async def scenario():
        ad = make_client(fake)
        await ad.edit(", x/foo/ c/bar/")
        await ad.echo("done")
        await ad.open("/tmp/a.txt")
        await ad.open_in_new_window("/tmp/b.txt")
        await ad.reload_current_buffer()

    asyncio.run(scenario())
    assert fake.ctl_messages == [
        EditScript(", x/foo/ c/bar/"),
        Echo("done"),
        Open("/tmp/a.txt"),
        OpenInNewWindow("/tmp/b.txt"),
        Reload(),
    ]
    assert fake.status_line == "done"


def test_send_control_is_verbatim(fake):
    asyncio.run(make_client(fake).send_control("echo  two  spaces"))
    assert fake.writes == [("ctl", b"echo  two  spaces")]


def test_rejected_ctl_message_raises(fake):
    with pytest.raises(P9Error):
        asyncio.run(make_client(fake).send_control("bogus"))


# ── Guard ───────────────────────────────────────────────────────

def test_require_ad_outside_editor_exits(fake):
    ad = make_client(fake, bufid=None)

    with pytest.raises(SystemExit) as exc:
        asyncio.run(ad.require_ad())

    assert exc.value.code == 1
    assert fake.ctl_messages == [Echo(NOT_IN_AD)]


def test_require_ad_inside_editor_is_silent(fake):
    asyncio.run(make_client(fake).require_ad())
    assert fake.ops == []


def test_report_error(fake):
    with pytest.raises(SystemExit) as exc:
        asyncio.run(make_client(fake).report_error("no such file"))

    assert exc.value.code == 1
    assert fake.writes == [("ctl", b"echo no such file")]


# ── Buffer directory ────────────────────────────────────────────

def test_list_buffers_is_raw(fake):
    data = asyncio.run(make_client(fake).list_buffers())
    assert data == b"1\t/home/me/notes.txt\n2\t+scratch\n"


def test_focus_then_current(fake):
    async def scenario():
        ad = make_client(fake)
        await ad.focus_buffer(2)
        assert await ad.current_buffer_id() == "2"
        assert await ad.current_buffer() == ad.buffer(2)

    asyncio.run(scenario())


def test_focus_unknown_buffer_surfaces_editor_error(fake):
    with pytest.raises(P9Error):
        asyncio.run(make_client(fake).focus_buffer(99))
    assert fake.current == "1"


def test_clear_buffer(fake):
    async def scenario():
        ad = make_client(fake)
        await ad.clear_buffer(1)
        return await ad.read_buffer_file(1, "body")

    assert asyncio.run(scenario()) == b""


def test_cursor_moves_write_exact_addresses(fake):
    async def scenario():
        ad = make_client(fake)
        await ad.cur_to_bof(1)
        await ad.cur_to_eof(1)

    asyncio.run(scenario())
    assert fake.writes == [("buffers/1/addr", b"0"), ("buffers/1/addr", b"$")]


def test_write_buffer_file_passes_bytes_through(fake):
    asyncio.run(make_client(fake).write_buffer_file(2, "body", b"raw\n"))
    assert fake.buffers["2"].body == "raw\n"


# ── Minibuffer ──────────────────────────────────────────────────

def test_minibuffer_select_with_prompt(fake):
    fake.minibuffer_choice = b"beta\n"

    choice = asyncio.run(make_client(fake).minibuffer_select(
        ["alpha", "beta", "gamma"], prompt="pick one"
    ))

    assert choice == "beta"
    assert fake.ops == [
        ("write", "minibuffer", b"alpha\nbeta\ngamma"),
        ("write", "ctl", b"minibuffer-prompt pick one"),
        ("read", "minibuffer", b""),
    ]
    assert fake.ctl_messages == [MinibufferPrompt("pick one")]


def test_minibuffer_select_without_prompt(fake):
    fake.minibuffer_choice = b"alpha"

    choice = asyncio.run(make_client(fake).minibuffer_select(["alpha", "beta"]))

    assert choice == "alpha"
    assert fake.ctl_messages == []


def test_minibuffer_cancelled(fake):
    fake.minibuffer_choice = b""
    assert asyncio.run(make_client(fake).minibuffer_select(["alpha"])) is None


# ── Log ─────────────────────────────────────────────────────────

def test_log_is_lazy(fake):
    make_client(fake).follow_log()
    assert fake.streams_opened == 0


def test_log_blocks_until_an_event_arrives(fake):
    async def scenario():
        events = make_client(fake).follow_log()

        first = asyncio.ensure_future(events.__anext__())
        await asyncio.sleep(0.01)
        assert not first.done()

        fake.emit_log(b"1 insert 0 5\n")
        assert await first == b"1 insert 0 5\n"

        second = asyncio.ensure_future(events.__anext__())
        await asyncio.sleep(0.01)
        assert not second.done()

        await events.aclose()
        with pytest.raises(StopAsyncIteration):
            await second
        assert events.closed

    asyncio.run(scenario())
    assert fake.streams_opened == 1
    assert fake.streams_closed == 1


def test_log_ends_when_editor_closes_it(fake):
    async def scenario():
        fake.emit_log(b"a")
        fake.emit_log(b"b")
        fake.emit_log(None)
        async with make_client(fake).follow_log() as events:
            return [chunk async for chunk in events]

    assert asyncio.run(scenario()) == [b"a", b"b"]


def test_log_is_not_restartable(fake):
    async def scenario():
        fake.emit_log(None)
        events = make_client(fake).follow_log()
        assert [chunk async for chunk in events] == []
        assert [chunk async for chunk in events] == []

    asyncio.run(scenario())
    assert fake.streams_opened == 1


def test_log_lines(fake):
    async def scenario():
        for chunk in (b"1 ins", b"ert\n2 delete\n3 ", b"save", None):
            fake.emit_log(chunk)
        return [line async for line in make_client(fake).follow_log().lines()]

    assert asyncio.run(scenario()) == ["1 insert", "2 delete", "3 save"]


# ── Lifecycle ───────────────────────────────────────────────────

def test_context_manager_connects_and_closes(fake):
    async def scenario():
        async with make_client(fake) as ad:
            assert fake.connected
            await ad.echo("hi")

    asyncio.run(scenario())
    assert fake.closed
