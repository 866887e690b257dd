"""Gateway: whisper transcriber in a child process, killable mid-window."""

from __future__ import annotations

import contextlib
import logging
import multiprocessing as mp
from multiprocessing.connection import Connection
from typing import Any

import numpy as np

from meetnote.l1_entities.audio_constants import SAMPLE_RATE
from meetnote.l1_entities.transcript import TranscriptSegment

log = logging.getLogger('meetnote.on_device')

_DEFAULT_LOAD_TIMEOUT = 120.0  # seconds
_MIN_WINDOW_TIMEOUT = 60.0  # seconds
_REALTIME_FACTOR = 10.0  # slowest acceptable inference, in seconds per second of audio
_JOIN_TIMEOUT = 5.0

# Replies are (kind, payload) tuples; segments travel as (text, start, end).
_READY = 'ready'
_SEGMENTS = 'segments'
_FAILED = 'failed'


def _worker_main(model_path: str, conn: Any) -> None:
    """Child main: load the model, then answer one window request at a time until ``None``."""
    from meetnote.l3_interface_adapters.gateways.whisper_transcriber import (  # noqa: PLC0415 -- deferred: pywhispercpp only in the child
        WhisperTranscriber,
        silence_c_output,
    )

    silence_c_output()
    transcriber = WhisperTranscriber()
    try:
        transcriber.load_model(model_path)
    except Exception as e:
        conn.send((_FAILED, str(e)))
        conn.close()
        return
    conn.send((_READY, None))

    while True:
        req = conn.recv()
        if req is None:
            break
        audio, language, prompt = req
        try:
            segments = transcriber.transcribe(audio, language=language, initial_prompt=prompt)
        except Exception as e:
            conn.send((_FAILED, str(e)))
            continue
        conn.send((_SEGMENTS, [(s.text, s.start, s.end) for s in segments]))

    transcriber.close()
    conn.close()


def window_timeout(audio: np.ndarray) -> float:
    """Deadline for one window, scaled to its length."""
    return max(_MIN_WINDOW_TIMEOUT, len(audio) / SAMPLE_RATE * _REALTIME_FACTOR)


class SubprocessWhisperTranscriber:
    """Whisper transcriber that runs inference in a spawned child process.

    whisper.cpp holds the GIL for a whole window, and an in-process call
    cannot be interrupted. In a child, the event loop stays free to deliver
    events and ``terminate()`` stops inference at once: the blocked
    ``load_model()`` or ``transcribe()`` then fails with RuntimeError.
    """

    def __init__(self, load_timeout: float = _DEFAULT_LOAD_TIMEOUT) -> None:
        self._load_timeout = load_timeout
        self._process: Any = None  # SpawnProcess; typed as Any, context returns a subclass
        self._conn: Connection | None = None

    def load_model(self, model_path: str) -> None:
        ctx = mp.get_context('spawn')
        parent_conn, child_conn = ctx.Pipe(duplex=True)
        self._process = ctx.Process(target=_worker_main, args=(model_path, child_conn), daemon=True)
        self._process.start()
        child_conn.close()
        self._conn = parent_conn

        kind, payload = self._receive(parent_conn, self._load_timeout, 'model load')
        if kind != _READY:
            raise RuntimeError(f'Whisper subprocess failed to load the model: {payload}')
        log.debug('Whisper subprocess ready (pid %s)', self._process.pid)

    def transcribe(
        self,
        audio: np.ndarray,
        language: str,
        initial_prompt: str = '',
    ) -> list[TranscriptSegment]:
        if self._conn is None:
            raise RuntimeError('Model not loaded. Call load_model() first.')
        self._conn.send((audio, language, initial_prompt))

        kind, payload = self._receive(self._conn, window_timeout(audio), 'transcription')
        if kind == _FAILED:
            raise RuntimeError(payload)
        return [TranscriptSegment(text=text, start=start, end=end) for text, start, end in payload]

    @staticmethod
    def _receive(conn: Connection, timeout: float, phase: str) -> tuple[str, Any]:
        try:
            if not conn.poll(timeout=timeout):
                raise TimeoutError(f'Timeout waiting for {phase} after {timeout:.0f}s')
            return conn.recv()
        except EOFError as e:
            raise RuntimeError(f'Whisper subprocess exited unexpectedly during {phase}') from e

    def terminate(self) -> None:
        if self._process is not None and self._process.is_alive():
            log.info('Terminating whisper subprocess')
            self._process.terminate()

    def close(self) -> None:
        if self._conn is not None:
            with contextlib.suppress(OSError, ValueError):
                self._conn.send(None)
            self._conn.close()
            self._conn = None
        if self._process is not None:
            self._process.join(timeout=_JOIN_TIMEOUT)
            if self._process.is_alive():
                self._process.terminate()
                self._process.join(timeout=1)
            self._process = None
