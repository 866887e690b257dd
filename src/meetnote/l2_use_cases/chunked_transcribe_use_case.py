"""Use case: transcribe a decoded recording in fixed windows with stride overlap."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

from meetnote.l1_entities.audio_constants import SAMPLE_RATE
from meetnote.l1_entities.transcript import TranscriptSegment, join_segments
from meetnote.l2_use_cases.ports.transcriber import Transcriber


@dataclass(frozen=True)
class AudioWindow:
    index: int
    start: float  # seconds from the start of the recording
    audio: np.ndarray


class ChunkedTranscribeUseCase:
    """Splits audio into ``chunk_length`` windows; consecutive windows share ``stride_length``.

    Does NO I/O itself; the caller runs ``transcribe_window()`` (off-thread if
    it likes) and feeds the segments back through ``apply_result()``, which
    drops the overlap region, shifts times to recording offsets and chains the
    last line into the next window's prompt.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        language: str,
        chunk_length: float = 30.0,
        stride_length: float = 5.0,
        initial_prompt: str = '',
    ) -> None:
        if stride_length >= chunk_length:
            raise ValueError('stride_length must be shorter than chunk_length')
        self._transcriber = transcriber
        self._language = language
        self._chunk_samples = int(SAMPLE_RATE * chunk_length)
        self._stride_samples = int(SAMPLE_RATE * stride_length)
        self._step_samples = self._chunk_samples - self._stride_samples
        self._initial_prompt = initial_prompt
        self._current_prompt = initial_prompt
        self.segments: list[TranscriptSegment] = []

    @property
    def stride(self) -> float:
        return self._stride_samples / SAMPLE_RATE

    def window_count(self, audio: np.ndarray) -> int:
        if len(audio) == 0:
            return 0
        if len(audio) <= self._chunk_samples:
            return 1
        return 1 + math.ceil((len(audio) - self._chunk_samples) / self._step_samples)

    def windows(self, audio: np.ndarray) -> Iterator[AudioWindow]:
        total = self.window_count(audio)
        for index in range(total):
            offset = index * self._step_samples
            yield AudioWindow(
                index=index,
                start=offset / SAMPLE_RATE,
                audio=audio[offset : offset + self._chunk_samples],
            )

    def transcribe_window(self, window: AudioWindow) -> list[TranscriptSegment]:
        """Run the engine on one window. Blocking."""
        return self._transcriber.transcribe(
            audio=window.audio,
            language=self._language,
            initial_prompt=self._current_prompt,
        )

    def apply_result(self, window: AudioWindow, segments: list[TranscriptSegment]) -> list[TranscriptSegment]:
        """Keep segments past the shared stride, shifted to recording offsets."""
        min_end = 0.0 if window.index == 0 else self.stride
        new_segments: list[TranscriptSegment] = []
        last_text = None

        for seg in segments:
            if seg.end > min_end:
                new_segments.append(
                    TranscriptSegment(
                        text=seg.text,
                        start=window.start + seg.start,
                        end=window.start + seg.end,
                    )
                )
                last_text = seg.text

        if last_text:
            self._current_prompt = f'{self._initial_prompt} {last_text}'.strip()

        self.segments.extend(new_segments)
        return new_segments

    @property
    def text(self) -> str:
        return join_segments(self.segments)
