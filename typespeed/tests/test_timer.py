import asyncio

from typespeed.session import SessionState, TypingSession, run_countdown


def test_countdown_runs_session_to_completion(clock):
    session = TypingSession("some text to type", duration_minutes=1, clock=clock)
    session.type_text("some")
    sleeps = []
    seen = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds)

    stats = asyncio.run(run_countdown(session, on_tick=seen.append, sleep=fake_sleep))

    assert session.state is SessionState.COMPLETED
    assert len(sleeps) == 60
    assert seen[0].time_remaining == 59
    assert stats.time_remaining == 0
    assert stats.total_chars == 4


def test_countdown_stops_when_text_is_finished(clock):
    session = TypingSession("abc", duration_minutes=1, clock=clock)
    session.type_char("a")

    async def typist_sleep(seconds):
        clock.advance(seconds)
        if session.time_remaining == 58:
            session.type_text("bc")

    asyncio.run(run_countdown(session, sleep=typist_sleep))

    assert session.is_complete
    assert session.time_remaining == 58


def test_countdown_does_nothing_for_idle_session(clock):
    session = TypingSession("abc", clock=clock)
    stats = asyncio.run(run_countdown(session, sleep=lambda s: asyncio.sleep(0)))
    assert stats.time_remaining == 60
    assert session.state is SessionState.IDLE
