import asyncio
from typing import Awaitable, Callable, Optional

from .tracker import SessionState, TypingSession, TypingStats

TICK_INTERVAL = 1.0


async def run_countdown(session: TypingSession, interval: float = TICK_INTERVAL,
                        on_tick: Optional[Callable[[TypingStats], None]] = None,
                        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> TypingStats:
    """
    Drive session.tick() once per interval until the session leaves Running.

    Ticks and input handlers share the event loop, so they never interleave
    mid-update. Cancel the task to abandon the session.
    """
    while session.state is SessionState.RUNNING:
        await sleep(interval)
        stats = session.tick()
        if on_tick is not None:
            on_tick(stats)
    return session.stats
