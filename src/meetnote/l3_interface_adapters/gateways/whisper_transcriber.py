"""Gateway: whisper.cpp inference on one recording window, run inside the whisper subprocess."""

from __future__ import annotations

import logging
import os
import re
import threading

import numpy as np
from pywhispercpp.model import Model

from meetnote.l1_entities.transcript import TranscriptSegment

log = logging.getLogger('meetnote.on_device')

# whisper.cpp annotates silence and noise as bracketed tags: [BLANK_AUDIO], (music), [Applause]
_NON_SPEECH = re.compile(r'^[\[(][^\])]*[\])]$')


def silence_c_output() -> None:
    """Point fds 1 and 2 at /dev/null for the rest of the process.

    whisper.cpp logs through C fprintf, which bypasses ``sys.stdout`` and
    would interleave with the parent's console events.
    """
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, 1)
    os.dup2(devnull, 2)
    os.close(devnull)


def is_speech(text: str) -> bool:
    return bool(text) and not _NON_SPEECH.match(text)


class TranscriptionTerminated(RuntimeError):
    pass


class WhisperTranscriber:
    """pywhispercpp adapter.

    Segments are collected through ``new_segment_callback`` as whisper.cpp
    produces them. Once ``terminate()`` is called, later segments of the
    running window are dropped and the call raises TranscriptionTerminated
    instead of returning a partial window; further calls are refused.
    """

    def __init__(self) -> None:
        self._model: Model | None = None
        self._stop = threading.Event()

    @property
    def terminated(self) -> bool:
        return self._stop.is_set()

    def load_model(self, model_path: str) -> None:
        self._model = Model(model_path, print_progress=False, print_realtime=False)

    def terminate(self) -> None:
        self._stop.set()

    def close(self) -> None:
        self._model = None

    def transcribe(
        self,
        audio: np.ndarray,
        language: str,
        initial_prompt: str = '',
    ) -> list[TranscriptSegment]:
        if self._model is None:
            raise RuntimeError('Model not loaded. Call load_model() first.')
        if self._stop.is_set():
            raise TranscriptionTerminated('Transcriber was terminated')

        segments: list[TranscriptSegment] = []

        def _on_segment(seg) -> None:
            if self._stop.is_set():
                return
            text = seg.text.strip()
            if is_speech(text):
                # whisper.cpp timestamps are centiseconds
                segments.append(TranscriptSegment(text=text, start=seg.t0 / 100.0, end=seg.t1 / 100.0))

        params: dict = {'language': language}
        if initial_prompt:
            params['initial_prompt'] = initial_prompt
        self._model.transcribe(audio, new_segment_callback=_on_segment, **params)

        if self._stop.is_set():
            log.info('Dropped window after terminate (%d segments)', len(segments))
            raise TranscriptionTerminated('Transcriber was terminated mid-window')
        return segments
