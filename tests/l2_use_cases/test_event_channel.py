"""Tests for EventChannel — ordering, single terminal, inert after close."""

from __future__ import annotations

import pytest

from meetnote.l1_entities.errors import EventProtocolError
from meetnote.l1_entities.transcription import (
    ClosedEvent,
    ErrorEvent,
    FailureCode,
    FinalEvent,
    PartialEvent,
    ProgressStep,
    StatusEvent,
    TranscriptionResult,
)
from meetnote.l2_use_cases.event_channel import EventChannel, result_for_event
from tests.conftest import EventRecorder


@pytest.fixture
def settled() -> list[TranscriptionResult]:
    return []


@pytest.fixture
def channel(recorder: EventRecorder, settled) -> EventChannel:
    return EventChannel(recorder, on_result=settled.append)


class TestOrdering:
    def test_events_delivered_in_emission_order(self, channel, recorder):
        channel.status('starting')
        channel.progress(ProgressStep.UPLOADING)
        channel.emit(PartialEvent(text='hel', progress=60))
        channel.emit(FinalEvent(text='hello'))
        channel.close()
        assert recorder.types == ['status', 'progress', 'partial', 'final', 'closed']

    def test_progress_carries_step_percent(self, channel, recorder):
        channel.progress(ProgressStep.TRANSCRIBING)
        event = recorder.events[0]
        assert event.step is ProgressStep.TRANSCRIBING
        assert event.progress == 50

    def test_repeated_step_is_skipped(self, channel, recorder):
        channel.progress(ProgressStep.UPLOADING)
        channel.progress(ProgressStep.UPLOADING)
        channel.progress(ProgressStep.TRANSCRIBING)
        assert [e.progress for e in recorder.of_type('progress')] == [10, 50]

    def test_step_behind_partial_is_skipped(self, channel, recorder):
        channel.emit(PartialEvent(text='hel', progress=60))
        channel.progress(ProgressStep.TRANSCRIBING)
        channel.progress(ProgressStep.COMPLETED)
        assert recorder.types == ['partial', 'progress']
        assert recorder.events[-1].step is ProgressStep.COMPLETED

    def test_forwarded_progress_is_not_filtered(self, channel, recorder):
        channel.progress(ProgressStep.TRANSCRIBING)
        channel.emit(PartialEvent(text='hel', progress=30))
        assert recorder.types == ['progress', 'partial']


class TestTerminal:
    def test_final_settles_success(self, channel, settled):
        channel.emit(FinalEvent(text='hello'))
        assert channel.result == TranscriptionResult.success('hello')
        assert settled == [TranscriptionResult.success('hello')]

    def test_error_settles_unknown_error_by_default(self, channel):
        channel.emit(ErrorEvent(message='upstream blew up'))
        assert channel.result is not None
        assert channel.result.code is FailureCode.UNKNOWN_ERROR
        assert channel.result.message == 'upstream blew up'

    def test_explicit_result_overrides_derived(self, channel):
        explicit = TranscriptionResult.failure(FailureCode.NETWORK_ERROR, 'socket reset')
        channel.emit(ErrorEvent(message='stream error'), result=explicit)
        assert channel.result is explicit

    def test_second_terminal_raises(self, channel):
        channel.emit(FinalEvent(text='a'))
        with pytest.raises(EventProtocolError):
            channel.emit(ErrorEvent(message='b'))

    def test_complete_does_not_duplicate_forwarded_terminal(self, channel, recorder):
        channel.emit(FinalEvent(text='from stream'))
        channel.complete(TranscriptionResult.success('ignored'))
        assert recorder.types == ['final', 'closed']
        assert channel.result == TranscriptionResult.success('from stream')

    def test_complete_with_failure_emits_error(self, channel, recorder):
        channel.complete(TranscriptionResult.failure(FailureCode.HTTP_ERROR, 'nope', http_status=500))
        assert recorder.types == ['error', 'closed']
        assert recorder.events[0].message == 'nope'
        assert channel.result.http_status == 500

    def test_complete_with_success_uses_message(self, channel, recorder):
        channel.complete(TranscriptionResult.success('text'), message='Done')
        final = recorder.of_type('final')[0]
        assert final.text == 'text'
        assert final.message == 'Done'


class TestClose:
    def test_close_without_terminal_synthesizes_error(self, channel, recorder):
        channel.status('working')
        channel.close()
        assert recorder.types == ['status', 'error', 'closed']
        assert channel.result.code is FailureCode.UNKNOWN_ERROR

    def test_closed_event_closes(self, channel, recorder):
        channel.emit(FinalEvent(text='x'))
        channel.emit(ClosedEvent())
        assert channel.closed
        assert recorder.types == ['final', 'closed']

    def test_events_after_close_are_dropped(self, channel, recorder):
        channel.complete(TranscriptionResult.success('x'))
        channel.emit(StatusEvent(message='late'))
        channel.emit(ErrorEvent(message='late error'))
        channel.close()
        channel.complete(TranscriptionResult.success('again'))
        assert recorder.types == ['final', 'closed']

    def test_closed_emitted_exactly_once(self, channel, recorder):
        channel.complete(TranscriptionResult.success('x'))
        channel.close()
        assert recorder.types.count('closed') == 1


class TestResultForEvent:
    def test_final(self):
        assert result_for_event(FinalEvent(text='t')).ok

    def test_error(self):
        assert result_for_event(ErrorEvent(message='m')).code is FailureCode.UNKNOWN_ERROR
