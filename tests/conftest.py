"""Shared pytest fixtures and configuration."""

from pathlib import Path

import pytest

from shortscreator.core.config import Settings
from shortscreator.core.logging_config import get_logger


class FakeProcess:
    """Stands in for subprocess.Popen: yields canned output lines, then exits."""

    def __init__(self, lines=(), returncode=0, on_line=None):
        self.lines = list(lines)
        self.returncode = returncode
        self.on_line = on_line
        self.killed = False
        self._finished = False

    @property
    def stdout(self):
        return self._iter_lines()

    def _iter_lines(self):
        for index, line in enumerate(self.lines):
            if self.killed:
                return
            yield line + "\n"
            if self.on_line:
                self.on_line(index, self)

    def wait(self, timeout=None):
        self._finished = True
        return -9 if self.killed else self.returncode

    def poll(self):
        if not self._finished and not self.killed:
            return None
        return -9 if self.killed else self.returncode

    def kill(self):
        self.killed = True


@pytest.fixture
def settings(tmp_path):
    """Create test settings instance with temp/output dirs under tmp_path."""
    return Settings(
        temp_dir=str(tmp_path / "tmp"),
        output_dir=str(tmp_path / "videos"),
        fonts_dir=None,
        render_timeout_seconds=None,
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def make_audio(tmp_path):
    """Create a small placeholder audio file and return its path."""

    def _make(name: str) -> Path:
        path = tmp_path / "segments" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"ID3fake")
        return path

    return _make


@pytest.fixture
def fake_process():
    return FakeProcess
