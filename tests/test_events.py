"""
Per-buffer event file, event filters and the body writer.
"""

import asyncio

import pytest

from ninep import P9Error

from adclient import AdClient, Config, FilterOutcome, run_event_filter

from fakead import FakeAd


@pytest.fixture
def fake():
    return FakeAd()


@pytest.fixture
def ad(fake):
    return AdClient(Config(editor_context_buffer_id="1"), fake)


# ── Event file ──────────────────────────────────────────────────

def test_event_lines_are_opaque_lines(ad, fake):
    async def scenario():
        fake.emit_event("1", b"E I 3 5 | hello\nE D ")
        fake.emit_event("1", b"0 2 | he\n")
        fake.emit_event("1", None)
        return [line async for line in ad.buffer(1).event_lines()]

    assert asyncio.run(scenario()) == ["E I 3 5 | hello", "E D 0 2 | he"]
    assert fake.streams_closed == 1


def test_event_stream_is_per_buffer(ad, fake):
    async def scenario():
        fake.emit_event("2", b"for two\n")
        fake.emit_event("2", None)
        fake.emit_event("1", None)
        one = [chunk async for chunk in ad.buffer(1).events()]
        two = [chunk async for chunk in ad.buffer(2).events()]
        return one, two

    assert asyncio.run(scenario()) == ([], [b"for two\n"])


def test_events_of_unknown_buffer_fail_on_first_read(ad):
    events = ad.buffer(9).events()

    async def scenario():
        async for _ in events:
            pass

    with pytest.raises(P9Error):
        asyncio.run(scenario())


def test_write_event_is_verbatim(ad, fake):
    asyncio.run(ad.buffer(1).write_event("L 4 9 | word\n"))
    assert fake.writes == [("buffers/1/event", b"L 4 9 | word\n")]


# ── Event filters ───────────────────────────────────────────────

def test_filter_passes_unhandled_events_back(ad, fake):
    handled = []

    async def on_event(line):
        if line.startswith("L"):
            handled.append(line)
            return FilterOutcome.HANDLED
        return None

    async def scenario():
        for chunk in (b"L 1 2 | a\n", b"X 3 4 | b\n", b"L 5 6 | c\n", None):
            fake.emit_event("1", chunk)
        return await ad.run_event_filter(1, on_event)

    assert asyncio.run(scenario()) == 3
    assert handled == ["L 1 2 | a", "L 5 6 | c"]
    assert fake.buffers["1"].returned_events == ["X 3 4 | b\n"]


def test_filter_stops_on_exit_and_releases_the_file(ad, fake):
    seen = []

    async def on_event(line):
        seen.append(line)
        if line == "quit":
            return FilterOutcome.EXIT
        return FilterOutcome.PASS

    async def scenario():
        fake.emit_event("1", b"one\nquit\nnever\n")
        return await run_event_filter(ad.buffer(1), on_event)

    assert asyncio.run(scenario()) == 2
    assert seen == ["one", "quit"]
    assert fake.buffers["1"].returned_events == ["one\n"]
    assert fake.streams_closed == 1


def test_filter_blocks_until_events_arrive(ad, fake):
    async def on_event(line):
        return FilterOutcome.EXIT

    async def scenario():
        task = asyncio.ensure_future(ad.run_event_filter(1, on_event))
        await asyncio.sleep(0.01)
        assert not task.done()
        fake.emit_event("1", b"go\n")
        return await task

    assert asyncio.run(scenario()) == 1


# ── Body writer ─────────────────────────────────────────────────

def test_body_writer_appends_each_write(ad, fake):
    async def scenario():
        async with ad.body_writer(2) as out:
            await out.write("building...\n")
            await out.write(b"ok\n")
            await out.writelines(["a\n", "b\n"])
        return out

    out = asyncio.run(scenario())

    assert out.closed
    assert fake.buffers["2"].body == "building...\nok\na\nb\n"
    assert [path for path, _ in fake.writes] == ["buffers/2/body"] * 4


def test_body_writer_skips_empty_writes(ad, fake):
    async def scenario():
        writer = ad.buffer(2).body_writer()
        return await writer.write("")

    assert asyncio.run(scenario()) == 0
    assert fake.writes == []


def test_body_writer_refuses_writes_after_close(ad, fake):
    async def scenario():
        writer = ad.buffer(2).body_writer()
        await writer.close()
        await writer.write("late")

    with pytest.raises(ValueError):
        asyncio.run(scenario())
    assert fake.buffers["2"].body == ""
