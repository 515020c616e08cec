from .tracker import (
    TIMER_OPTIONS,
    CharacterState,
    CharStatus,
    SessionState,
    TypingSession,
    TypingStats,
)
from .texts import get_random_text
from .timer import run_countdown

__all__ = [
    "TIMER_OPTIONS",
    "CharacterState",
    "CharStatus",
    "SessionState",
    "TypingSession",
    "TypingStats",
    "get_random_text",
    "run_countdown",
]
