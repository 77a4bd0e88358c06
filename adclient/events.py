"""
Event filters.

A filter sits on a buffer's `event` file and sees each input event
before ad does. For every event line the handler decides:

    HANDLED  the script dealt with it; ad does nothing
    PASS     write the line back so ad runs its default handling
    EXIT     stop filtering; ad takes its events back

Usage:
    async def on_event(line: str) -> FilterOutcome:
        if "Look" in line:
            await ad.echo(line)
            return FilterOutcome.HANDLED
        return FilterOutcome.PASS

    await run_event_filter(ad.buffer(bufid), on_event)
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

if TYPE_CHECKING:
    from .buffers import Buffer

logger = logging.getLogger(__name__)


class FilterOutcome(Enum):
    HANDLED = "handled"
    PASS = "pass"
    EXIT = "exit"


EventHandler = Callable[[str], Awaitable[Optional[FilterOutcome]]]


async def run_event_filter(buffer: 'Buffer', handler: EventHandler) -> int:
    """
    Feed the buffer's events to handler until it returns EXIT or ad
    closes the event file. A handler returning None passes the event on.

    Returns the number of events seen.
    """
    seen = 0
    lines = buffer.event_lines()
    try:
        async for line in lines:
            seen += 1
            outcome = await handler(line)
            if outcome is None:
                outcome = FilterOutcome.PASS
            logger.debug(f"{buffer!r} event {line!r}: {outcome.value}")

            if outcome is FilterOutcome.PASS:
                await buffer.write_event(line + "\n")
            elif outcome is FilterOutcome.EXIT:
                break
    finally:
        await lines.aclose()

    return seen
