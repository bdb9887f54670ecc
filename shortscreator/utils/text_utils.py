"""Text utility functions for narration estimates."""

# This module is part of shortscreator.utils package

from shortscreator.models.schemas import WordTiming


def estimate_spoken_duration(text: str, words_per_minute: int = 150) -> float:
    """
    Estimate the spoken duration of text in seconds.

    Args:
        text: Text to estimate duration for.
        words_per_minute: Average speaking rate (default 150 WPM).

    Returns:
        Estimated duration in seconds (at least one second for non-empty text).
    """
    word_count = len(text.split())
    if word_count == 0:
        return 0.0
    return max(1.0, word_count / words_per_minute * 60)


def estimate_word_timings(text: str, duration: float) -> list[WordTiming]:
    """
    Spread the words of ``text`` evenly over ``duration`` seconds.

    Used when a provider cannot report real timings; good enough for
    placing one caption per word.
    """
    words = text.split()
    if not words or duration <= 0:
        return []
    slot = duration / len(words)
    timings = []
    for index, word in enumerate(words):
        start = round(index * slot, 3)
        end = min(duration, round((index + 1) * slot, 3))
        timings.append(WordTiming(word=word, start=start, end=max(start, end)))
    return timings
