"""Utility functions for the Shorts Creator composition engine."""

from shortscreator.utils.io_utils import delete_temporary_file, delete_temporary_files, unique_temp_path
from shortscreator.utils.text_utils import estimate_spoken_duration, estimate_word_timings

__all__ = [
    "delete_temporary_file",
    "delete_temporary_files",
    "unique_temp_path",
    "estimate_spoken_duration",
    "estimate_word_timings",
]
