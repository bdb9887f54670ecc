"""Speech synthesis boundary - provider contract, voice ids, provider lookup and a silent stub."""

from typing import Any, Iterable, Optional, Protocol, Sequence, runtime_checkable

from shortscreator.core.config import Settings
from shortscreator.core.errors import RenderProcessError, SynthesisError
from shortscreator.models.schemas import NarrationSegment, ParsedVoiceId
from shortscreator.services.render_executor import RenderExecutor
from shortscreator.utils.io_utils import delete_temporary_files, unique_temp_path
from shortscreator.utils.parallel_executor import ParallelExecutor
from shortscreator.utils.text_utils import estimate_spoken_duration, estimate_word_timings


@runtime_checkable
class SpeechSynthesizer(Protocol):
    """
    A text-to-speech provider.

    ``generate`` writes one audio file and returns it as a segment whose
    duration is the real audio length. Word timings are only filled when
    ``want_timings`` is true. Implementations raise SynthesisError (or let
    any provider error escape, which callers treat the same way).
    """

    provider_id: str

    def generate(self, text: str, voice_id: str, want_timings: bool) -> NarrationSegment: ...


def parse_voice_id(global_voice_id: Optional[str]) -> ParsedVoiceId:
    """
    Split ``provider_voice`` on the first underscore.

    ``"openai_echo"`` gives provider ``openai`` and voice ``echo``; anything
    after the first underscore belongs to the voice.

    Raises:
        ValueError: If either part is missing or blank
    """
    if not global_voice_id or "_" not in global_voice_id:
        raise ValueError(f"Invalid voice id '{global_voice_id}', expected 'provider_voice'")
    provider_id, voice_id = global_voice_id.split("_", 1)
    if not provider_id.strip() or not voice_id.strip():
        raise ValueError(f"Invalid voice id '{global_voice_id}': provider and voice must be non-empty")
    return ParsedVoiceId(provider_id=provider_id, voice_id=voice_id)


class SynthesisProviders:
    """
    Provider lookup by key.

    A job resolves its provider once, when it starts, and passes the
    resolved instance along; nothing looks providers up later.
    """

    def __init__(self, providers: Iterable[SpeechSynthesizer]):
        self._providers = {provider.provider_id: provider for provider in providers}

    @property
    def provider_ids(self) -> list[str]:
        return sorted(self._providers)

    def get(self, provider_id: str) -> SpeechSynthesizer:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise SynthesisError(f"No speech provider registered for '{provider_id}' (known: {self.provider_ids})")
        return provider

    def resolve(self, global_voice_id: str) -> tuple[SpeechSynthesizer, str]:
        """Provider and provider-specific voice for a global voice id."""
        try:
            parsed = parse_voice_id(global_voice_id)
        except ValueError as e:
            raise SynthesisError(str(e)) from e
        return self.get(parsed.provider_id), parsed.voice_id


class StubSpeechSynthesizer:
    """
    Offline provider producing silent audio of the estimated spoken length.

    Word timings are spread evenly over the clip so subtitles still work
    when no vendor credentials are available.
    """

    provider_id = "stub"

    def __init__(self, settings: Settings, logger: Any, executor: Optional[RenderExecutor] = None):
        self.settings = settings
        self.logger = logger
        self.executor = executor or RenderExecutor(settings, logger)

    def generate(self, text: str, voice_id: str, want_timings: bool) -> NarrationSegment:
        duration = round(estimate_spoken_duration(text), 3)
        if duration <= 0:
            raise SynthesisError("Cannot synthesize empty text")

        audio_path = unique_temp_path(self.settings.temp_path, "speech", f".{self.settings.narration_audio_format}")
        try:
            self.executor.generate_silence(duration, audio_path)
        except RenderProcessError as e:
            raise SynthesisError(f"Stub synthesis failed: {e}") from e

        timings = estimate_word_timings(text, duration) if want_timings else []
        self.logger.debug(f"Stub voice '{voice_id}': {len(text.split())} words, {duration:.2f}s")
        return NarrationSegment(audio_path=audio_path, duration=duration, word_timings=tuple(timings))


def synthesize_segments(
    synthesizer: SpeechSynthesizer,
    lines: Sequence[tuple[str, str, bool]],
    parallel_executor: ParallelExecutor,
    logger: Any,
    job_id: Optional[str] = None,
) -> list[NarrationSegment]:
    """
    Synthesize ``(text, voice_id, want_timings)`` lines concurrently and return segments in line order.

    If any line fails, the audio of the lines that succeeded is deleted and
    a SynthesisError is raised for the first failure.
    """

    def create_task(text: str, voice_id: str, want_timings: bool):
        def generate_segment():
            return synthesizer.generate(text, voice_id, want_timings)

        return generate_segment

    tasks = [create_task(text, voice_id, want_timings) for text, voice_id, want_timings in lines]
    task_names = [f"segment_{i + 1}" for i in range(len(tasks))]
    results = parallel_executor.execute_api_calls(tasks, task_names=task_names, job_id=job_id)

    segments = [result for result, exception in results if exception is None and result is not None]
    failures = [
        (i, exception or SynthesisError("provider returned no segment"))
        for i, (result, exception) in enumerate(results)
        if exception is not None or result is None
    ]
    if failures:
        delete_temporary_files([segment.audio_path for segment in segments], logger)
        index, exception = failures[0]
        raise SynthesisError(
            f"Speech synthesis failed for {len(failures)}/{len(tasks)} segment(s); "
            f"first failure at segment {index + 1}: {exception}"
        ) from exception
    return segments
