"""Shared test fixtures and protocol-conforming fakes."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path

import numpy as np
import pytest

from meetnote.l1_entities.config import AppConfig
from meetnote.l1_entities.errors import TranscriptionError
from meetnote.l1_entities.transcript import TranscriptSegment
from meetnote.l1_entities.transcription import (
    ProviderKind,
    TranscriptionEvent,
    TranscriptionRequest,
    TranscriptionResult,
)
from meetnote.l4_frameworks_and_drivers.config import build_app_config

# --- Protocol-conforming Fakes ---


class FakeTranscriber:
    """Fake transcriber for on-device tests."""

    def __init__(self, segments: list[TranscriptSegment] | None = None):
        self._segments = segments or []
        self.load_model_calls: list[str] = []
        self.transcribe_calls: list[tuple[np.ndarray, str, str]] = []
        self.terminate_calls = 0
        self.close_calls = 0

    def load_model(self, model_path: str) -> None:
        self.load_model_calls.append(model_path)

    def transcribe(
        self,
        audio: np.ndarray,
        language: str,
        initial_prompt: str = '',
    ) -> list[TranscriptSegment]:
        self.transcribe_calls.append((audio, language, initial_prompt))
        return self._segments

    def terminate(self) -> None:
        self.terminate_calls += 1

    def close(self) -> None:
        self.close_calls += 1

    def set_segments(self, segments: list[TranscriptSegment]) -> None:
        self._segments = segments


class FakeModelResolver:
    """Fake resolver: returns ``/models/<name>.bin`` and reports the given progress steps."""

    def __init__(self, on_progress: Callable[[int], None] | None = None, progress: list[int] | None = None):
        self._on_progress = on_progress
        self._progress = progress or []
        self.resolve_calls: list[str] = []

    def resolve(self, model_name: str) -> str:
        self.resolve_calls.append(model_name)
        for percent in self._progress:
            if self._on_progress is not None:
                self._on_progress(percent)
        return f'/models/{model_name}.bin'


AttemptBody = Callable[..., Awaitable[TranscriptionResult]]


class FakeProvider:
    """Fake provider: completes the channel with a preset result, or runs a custom body."""

    def __init__(
        self,
        kind: ProviderKind,
        result: TranscriptionResult | None = None,
        body: AttemptBody | None = None,
    ):
        self.kind = kind
        self._result = result or TranscriptionResult.success('fake transcript')
        self._body = body
        self.attempt_calls: list[TranscriptionRequest] = []

    async def attempt(self, request, channel, abort) -> TranscriptionResult:
        self.attempt_calls.append(request)
        if self._body is not None:
            return await self._body(request, channel, abort)
        channel.complete(self._result)
        return self._result


class FakeRelayProvider(FakeProvider):
    """Fake relay: upload either returns an id or raises the preset TranscriptionError."""

    def __init__(
        self,
        upload_error: TranscriptionError | None = None,
        result: TranscriptionResult | None = None,
    ):
        super().__init__(ProviderKind.BACKEND_RELAY, result=result or TranscriptionResult.success('relay transcript'))
        self._upload_error = upload_error
        self.upload_calls = 0
        self.stream_calls: list[str] = []

    async def upload(self, request, channel, abort) -> str:
        self.upload_calls += 1
        if self._upload_error is not None:
            raise self._upload_error
        return 'tx-1'

    async def stream(self, transcription_id, request, channel, abort) -> TranscriptionResult:
        self.stream_calls.append(transcription_id)
        channel.complete(self._result)
        return self._result


class FakeProviderFactory:
    """Provider factory returning preset fakes per kind and recording the calls."""

    def __init__(self, providers: dict[ProviderKind, FakeProvider] | None = None):
        self.providers = providers or {}
        self.calls: list[ProviderKind] = []

    def __call__(self, kind: ProviderKind, plan) -> FakeProvider:
        self.calls.append(kind)
        if kind not in self.providers:
            self.providers[kind] = FakeProvider(kind)
        return self.providers[kind]


class EventRecorder:
    """Callable event sink that keeps everything it receives."""

    def __init__(self) -> None:
        self.events: list[TranscriptionEvent] = []

    def __call__(self, event: TranscriptionEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def of_type(self, event_type: str) -> list[TranscriptionEvent]:
        return [e for e in self.events if e.type == event_type]


def make_config(raw: dict | None = None) -> AppConfig:
    """Build an AppConfig from *raw* on top of the defaults, ignoring the process environment."""
    return build_app_config(raw or {}, environ={})


# --- Standard Fixtures ---


@pytest.fixture
def default_config() -> AppConfig:
    return make_config()


@pytest.fixture
def cloud_config() -> AppConfig:
    return make_config({'cloud': {'api_key': 'sk-test'}})


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def fake_transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def recording(tmp_path: Path) -> Path:
    p = tmp_path / 'meeting.m4a'
    p.write_bytes(b'\x00\x00\x00\x18ftypM4A fake audio')
    return p


@pytest.fixture
def sample_config_yaml(tmp_path: Path) -> Path:
    content = """\
cloud:
  api_key: "sk-from-yaml"
  model: "whisper-1"
relay:
  base_url: "https://relay.example.com"
  force: false
on_device:
  enabled: false
  model: "base"
  load_timeout: 30
request_timeout: 45
language: "da"
"""
    p = tmp_path / 'config.yaml'
    p.write_text(content, encoding='utf-8')
    return p
