"""Tests for transcription entities — events, request, result."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from meetnote.l1_entities.transcription import (
    RAW_BODY_LIMIT,
    ClosedEvent,
    ErrorEvent,
    FailureCode,
    FinalEvent,
    PartialEvent,
    ProgressEvent,
    ProgressStep,
    StatusEvent,
    TranscriptionRequest,
    TranscriptionResult,
    parse_event,
    truncate_body,
)


class TestParseEvent:
    def test_parses_json_text(self):
        event = parse_event('{"type": "partial", "text": "hello", "progress": 60}')
        assert isinstance(event, PartialEvent)
        assert event.text == 'hello'
        assert event.progress == 60

    def test_parses_bytes(self):
        event = parse_event(b'{"type": "final", "text": "done", "timestamp": 12.5}')
        assert isinstance(event, FinalEvent)
        assert event.timestamp == 12.5

    def test_parses_dict(self):
        event = parse_event({'type': 'progress', 'step': 'transcribing', 'progress': 50})
        assert isinstance(event, ProgressEvent)
        assert event.step is ProgressStep.TRANSCRIBING

    def test_closed_event(self):
        assert isinstance(parse_event('{"type": "closed"}'), ClosedEvent)

    def test_unknown_type_raises(self):
        with pytest.raises(ValidationError):
            parse_event('{"type": "bogus"}')

    def test_non_json_raises(self):
        with pytest.raises(ValidationError):
            parse_event('not json at all')

    def test_missing_timestamp_is_filled_in(self):
        event = parse_event('{"type": "status", "message": "hi"}')
        assert isinstance(event, StatusEvent)
        assert event.timestamp > 0


class TestProgressEvent:
    @pytest.mark.parametrize(
        ('step', 'percent'),
        [
            (ProgressStep.UPLOADING, 10),
            (ProgressStep.TRANSCRIBING, 50),
            (ProgressStep.COMPLETED, 100),
        ],
    )
    def test_for_step(self, step, percent):
        event = ProgressEvent.for_step(step)
        assert event.type == 'progress'
        assert event.step is step
        assert event.progress == percent


class TestEventsAreImmutable:
    def test_frozen(self):
        event = ErrorEvent(message='boom')
        with pytest.raises(ValidationError):
            event.message = 'other'  # ty: ignore[invalid-assignment]


class TestTranscriptionRequest:
    def test_defaults(self):
        req = TranscriptionRequest(audio_uri='file:///tmp/a.m4a')
        assert req.language == 'en'
        assert req.agenda is None
        assert req.on_device is None
        assert req.abort_signal is None

    def test_accepts_abort_signal(self):
        signal = asyncio.Event()
        req = TranscriptionRequest(audio_uri='/tmp/a.m4a', abort_signal=signal)
        assert req.abort_signal is signal
        assert 'abort_signal' not in req.model_dump()

    def test_frozen(self):
        req = TranscriptionRequest(audio_uri='/tmp/a.m4a')
        with pytest.raises(ValidationError):
            req.language = 'da'  # ty: ignore[invalid-assignment]


class TestTranscriptionResult:
    def test_success(self):
        result = TranscriptionResult.success('hello')
        assert result.ok
        assert result.text == 'hello'
        assert result.code is None

    def test_failure(self):
        result = TranscriptionResult.failure(FailureCode.HTTP_ERROR, 'bad', http_status=502, raw_body='oops')
        assert not result.ok
        assert result.code is FailureCode.HTTP_ERROR
        assert result.http_status == 502
        assert result.raw_body == 'oops'

    def test_raw_body_truncated(self):
        result = TranscriptionResult.failure(FailureCode.HTTP_ERROR, 'bad', raw_body='x' * 500)
        assert len(result.raw_body or '') == RAW_BODY_LIMIT

    def test_empty_text_success_is_still_ok(self):
        assert TranscriptionResult.success('').ok


class TestTruncateBody:
    def test_none(self):
        assert truncate_body(None) is None

    def test_short_body_untouched(self):
        assert truncate_body('short') == 'short'

    def test_long_body_cut(self):
        assert truncate_body('a' * 201) == 'a' * 200
