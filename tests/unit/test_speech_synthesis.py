"""Tests for the speech synthesis boundary."""

from unittest.mock import MagicMock

import pytest

from shortscreator.core.errors import RenderProcessError, SynthesisError
from shortscreator.models.schemas import NarrationSegment
from shortscreator.services.render_executor import RenderExecutor
from shortscreator.services.speech_synthesis import (
    SpeechSynthesizer,
    StubSpeechSynthesizer,
    SynthesisProviders,
    parse_voice_id,
    synthesize_segments,
)
from shortscreator.utils.parallel_executor import ParallelExecutor


class FakeSynthesizer:
    """Writes a small file per call; fails for texts listed in ``fail_on``."""

    provider_id = "fake"

    def __init__(self, directory, fail_on=()):
        self.directory = directory
        self.fail_on = set(fail_on)
        self.calls = []

    def generate(self, text, voice_id, want_timings):
        self.calls.append((text, voice_id, want_timings))
        if text in self.fail_on:
            raise RuntimeError(f"provider rejected '{text}'")
        path = self.directory / f"{text}.mp3"
        path.write_bytes(b"ID3")
        return NarrationSegment(audio_path=path, duration=float(len(text)))


@pytest.mark.parametrize(
    "global_id, provider, voice",
    [
        ("openai_echo", "openai", "echo"),
        ("elevenlabs_my_cloned_voice", "elevenlabs", "my_cloned_voice"),
        ("stub_alloy", "stub", "alloy"),
    ],
)
def test_parse_voice_id(global_id, provider, voice):
    parsed = parse_voice_id(global_id)

    assert parsed.provider_id == provider
    assert parsed.voice_id == voice


@pytest.mark.parametrize("global_id", ["openai", "_echo", "openai_", "", None, " _echo"])
def test_parse_voice_id_invalid(global_id):
    with pytest.raises(ValueError):
        parse_voice_id(global_id)


def test_providers_lookup(tmp_path):
    fake = FakeSynthesizer(tmp_path)
    providers = SynthesisProviders([fake])

    assert providers.get("fake") is fake
    assert providers.resolve("fake_voice1") == (fake, "voice1")
    assert providers.provider_ids == ["fake"]


def test_providers_unknown_or_invalid(tmp_path):
    providers = SynthesisProviders([FakeSynthesizer(tmp_path)])

    with pytest.raises(SynthesisError):
        providers.get("openai")
    with pytest.raises(SynthesisError):
        providers.resolve("no-underscore")


def test_stub_synthesizer(settings, logger):
    executor = MagicMock(spec=RenderExecutor)
    stub = StubSpeechSynthesizer(settings, logger, executor)

    segment = stub.generate("one two three", "alloy", want_timings=True)

    assert isinstance(stub, SpeechSynthesizer)
    assert segment.duration == 1.2
    assert [t.word for t in segment.word_timings] == ["one", "two", "three"]
    assert segment.word_timings[-1].end <= segment.duration
    assert segment.audio_path.parent == settings.temp_path
    executor.generate_silence.assert_called_once_with(1.2, segment.audio_path)


def test_stub_synthesizer_without_timings(settings, logger):
    stub = StubSpeechSynthesizer(settings, logger, MagicMock(spec=RenderExecutor))

    assert stub.generate("hello there", "alloy", want_timings=False).word_timings == ()


def test_stub_synthesizer_failures(settings, logger):
    executor = MagicMock(spec=RenderExecutor)
    executor.generate_silence.side_effect = RenderProcessError("ffmpeg failed generating silence")
    stub = StubSpeechSynthesizer(settings, logger, executor)

    with pytest.raises(SynthesisError):
        stub.generate("hello", "alloy", want_timings=True)
    with pytest.raises(SynthesisError):
        stub.generate("   ", "alloy", want_timings=True)


def test_synthesize_segments_keeps_line_order(settings, logger, tmp_path):
    fake = FakeSynthesizer(tmp_path)
    lines = [("alpha", "v1", False), ("be", "v2", True), ("gamma", "v1", True), ("d", "v3", True)]

    segments = synthesize_segments(fake, lines, ParallelExecutor(settings, logger), logger, job_id="job_test")

    assert [s.audio_path.name for s in segments] == ["alpha.mp3", "be.mp3", "gamma.mp3", "d.mp3"]
    assert sorted(fake.calls) == sorted(lines)


def test_synthesize_segments_failure_cleans_up(settings, logger, tmp_path):
    fake = FakeSynthesizer(tmp_path, fail_on={"be"})
    lines = [("alpha", "v", True), ("be", "v", True), ("gamma", "v", True)]

    with pytest.raises(SynthesisError, match="segment 2"):
        synthesize_segments(fake, lines, ParallelExecutor(settings, logger), logger)

    assert list(tmp_path.glob("*.mp3")) == []
