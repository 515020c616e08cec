import math

CHARS_PER_WORD = 5


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves upward, as browsers do, instead of Python's banker's rounding"""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def calculate_wpm(correct_chars: int, elapsed_seconds: float) -> int:
    if elapsed_seconds <= 0:
        return 0
    minutes = elapsed_seconds / 60.0
    return int(round_half_up((correct_chars / CHARS_PER_WORD) / minutes))


def calculate_cpm(correct_chars: int, elapsed_seconds: float) -> int:
    if elapsed_seconds <= 0:
        return 0
    return int(round_half_up(correct_chars / (elapsed_seconds / 60.0)))


def calculate_accuracy(correct_chars: int, total_chars: int) -> int:
    if total_chars <= 0:
        return 0
    return int(round_half_up(correct_chars / total_chars * 100))


def count_correct(target_text: str, typed_text: str) -> int:
    """Characters of the typed prefix that match the target at the same index"""
    return sum(1 for typed, expected in zip(typed_text, target_text) if typed == expected)
