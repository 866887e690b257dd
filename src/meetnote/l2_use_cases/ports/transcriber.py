"""Port: on-device speech-to-text engine."""

from __future__ import annotations

from typing import Protocol

import numpy as np

from meetnote.l1_entities.transcript import TranscriptSegment


class Transcriber(Protocol):
    """Abstract transcription engine. Zero framework types leak through."""

    def load_model(self, model_path: str) -> None:
        """Load the transcription model from the given path."""
        ...

    def transcribe(
        self,
        audio: np.ndarray,
        language: str,
        initial_prompt: str = '',
    ) -> list[TranscriptSegment]:
        """Transcribe an audio buffer into transcript segments."""
        ...

    def terminate(self) -> None:
        """Interrupt in-flight inference. Safe to call from any thread."""
        ...

    def close(self) -> None:
        """Release underlying resources."""
        ...
