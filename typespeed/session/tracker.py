"""
Typing Session Tracker

Live state of one timed typing test: the typed prefix, per-character
status, the countdown and the derived speed/accuracy figures. Every input
event and every tick recomputes the whole picture from the typed prefix;
target texts are a few hundred characters, so there is nothing to cache.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Any

from ..logger import get_logger
from ..models import DIFFICULTIES
from .metrics import calculate_accuracy, calculate_cpm, calculate_wpm, count_correct

logger = get_logger(__name__)

TIMER_OPTIONS = (1, 2, 5)


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class CharStatus(str, Enum):
    UPCOMING = "upcoming"
    CURRENT = "current"
    CORRECT = "correct"
    INCORRECT = "incorrect"


@dataclass(frozen=True)
class CharacterState:
    character: str
    status: CharStatus

    @property
    def is_space(self) -> bool:
        return self.character == " "


@dataclass(frozen=True)
class TypingStats:
    wpm: int = 0
    cpm: int = 0
    accuracy: int = 0
    time_remaining: int = 0
    correct_chars: int = 0
    incorrect_chars: int = 0
    total_chars: int = 0


class TypingSession:
    """
    One typing test against a fixed target text.

    Idle -> Running on the first typed character (or start()), Running ->
    Completed when the countdown hits zero or the whole text has been typed,
    Completed -> Idle on retake().

    Args:
        text: Target text to type
        duration_minutes: One of TIMER_OPTIONS
        difficulty: Difficulty tier the text was drawn from
        clock: Monotonic seconds source used for elapsed time
    """

    def __init__(self, text: str, duration_minutes: int = 1, difficulty: str = "easy",
                 clock: Callable[[], float] = time.monotonic):
        if not text:
            raise ValueError("Target text must not be empty")
        if duration_minutes not in TIMER_OPTIONS:
            raise ValueError(f"Duration must be one of {TIMER_OPTIONS} minutes")
        if difficulty not in DIFFICULTIES:
            raise ValueError(f"Difficulty must be one of {DIFFICULTIES}")

        self.text = text
        self.duration_minutes = duration_minutes
        self.difficulty = difficulty
        self._clock = clock
        self._reset()

    def _reset(self):
        self.state = SessionState.IDLE
        self.typed = ""
        self.time_remaining = self.duration_seconds
        self._started_at: Optional[float] = None
        self._finished_at: Optional[float] = None
        self._stats = TypingStats(time_remaining=self.time_remaining)

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.RUNNING

    @property
    def is_complete(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def current_index(self) -> int:
        return len(self.typed)

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._finished_at if self._finished_at is not None else self._clock()
        return max(0.0, end - self._started_at)

    @property
    def stats(self) -> TypingStats:
        return self._stats

    @property
    def characters(self) -> List[CharacterState]:
        """Status of every character of the target text"""
        states = []
        show_current = self.state is not SessionState.COMPLETED
        for index, char in enumerate(self.text):
            if index < len(self.typed):
                status = CharStatus.CORRECT if self.typed[index] == char else CharStatus.INCORRECT
            elif index == len(self.typed) and show_current:
                status = CharStatus.CURRENT
            else:
                status = CharStatus.UPCOMING
            states.append(CharacterState(char, status))
        return states

    def start(self):
        """Start the countdown; a no-op unless the session is idle"""
        if self.state is not SessionState.IDLE:
            return
        self.state = SessionState.RUNNING
        self._started_at = self._clock()
        logger.debug("Typing session started (%d s, %s)", self.duration_seconds, self.difficulty)

    def type_char(self, char: str) -> TypingStats:
        """Handle one typed character; input past the end of the text is dropped"""
        if len(char) != 1:
            raise ValueError("type_char expects exactly one character")
        if self.is_complete:
            return self._stats
        if self.state is SessionState.IDLE:
            self.start()

        if len(self.typed) < len(self.text):
            self.typed += char
        self._recompute()

        if len(self.typed) == len(self.text):
            self._complete()
        return self._stats

    def type_text(self, text: str) -> TypingStats:
        for char in text:
            self.type_char(char)
        return self._stats

    def backspace(self) -> TypingStats:
        if self.is_complete or not self.typed:
            return self._stats
        self.typed = self.typed[:-1]
        self._recompute()
        return self._stats

    def tick(self) -> TypingStats:
        """Advance the countdown by one second while running"""
        if self.state is not SessionState.RUNNING:
            return self._stats
        self.time_remaining = max(0, self.time_remaining - 1)
        if self.time_remaining == 0:
            self._complete()
        else:
            self._recompute()
        return self._stats

    def retake(self, text: Optional[str] = None):
        """Back to idle with a full clock, optionally on a new text"""
        if text is not None:
            if not text:
                raise ValueError("Target text must not be empty")
            self.text = text
        self._reset()

    def _recompute(self):
        correct = count_correct(self.text, self.typed)
        total = len(self.typed)
        elapsed = self.elapsed_seconds
        self._stats = TypingStats(
            wpm=calculate_wpm(correct, elapsed),
            cpm=calculate_cpm(correct, elapsed),
            accuracy=calculate_accuracy(correct, total),
            time_remaining=self.time_remaining,
            correct_chars=correct,
            incorrect_chars=total - correct,
            total_chars=total,
        )

    def _complete(self):
        self._finished_at = self._clock()
        self._recompute()
        self.state = SessionState.COMPLETED
        logger.debug("Typing session completed: %s", self._stats)

    def result_payload(self, username: str) -> Dict[str, Any]:
        """Fields of the create-result request for this completed session"""
        if not self.is_complete:
            raise RuntimeError("Session is not complete")
        stats = self._stats
        return {
            "username": username,
            "wpm": stats.wpm,
            "cpm": stats.cpm,
            "accuracy": stats.accuracy,
            "total_time": max(1, self.duration_seconds - self.time_remaining),
            "difficulty": self.difficulty,
            "total_characters": stats.total_chars,
            "correct_characters": stats.correct_chars,
            "incorrect_characters": stats.incorrect_chars,
            "test_text": self.text,
        }
