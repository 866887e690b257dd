"""Use case: event normalization — one ordered, single-terminal event stream per attempt."""

from __future__ import annotations

import logging
from collections.abc import Callable

from meetnote.l1_entities.errors import EventProtocolError
from meetnote.l1_entities.transcription import (
    TERMINAL_EVENT_TYPES,
    ClosedEvent,
    ErrorEvent,
    FailureCode,
    FinalEvent,
    PartialEvent,
    ProgressEvent,
    ProgressStep,
    StatusEvent,
    TranscriptionEvent,
    TranscriptionResult,
)

log = logging.getLogger('meetnote.events')

EventSink = Callable[[TranscriptionEvent], None]


def result_for_event(event: FinalEvent | ErrorEvent) -> TranscriptionResult:
    """Derive the terminal result implied by a terminal event."""
    if isinstance(event, FinalEvent):
        return TranscriptionResult.success(event.text)
    return TranscriptionResult.failure(FailureCode.UNKNOWN_ERROR, event.message)


class EventChannel:
    """Wraps the caller's sink and enforces the attempt's event contract.

    - Events reach the sink in emission order, with no buffering.
    - Exactly one terminal event (``final`` or ``error``) precedes ``closed``;
      emitting a second one is an adapter bug and raises EventProtocolError.
    - Step progress reported through ``progress()`` never goes backwards.
    - After ``closed`` the channel is inert and drops everything.
    """

    def __init__(
        self,
        sink: EventSink,
        on_result: Callable[[TranscriptionResult], None] | None = None,
    ) -> None:
        self._sink = sink
        self._on_result = on_result
        self._terminal: FinalEvent | ErrorEvent | None = None
        self._result: TranscriptionResult | None = None
        self._closed = False
        self._progress = -1

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminal(self) -> FinalEvent | ErrorEvent | None:
        return self._terminal

    @property
    def result(self) -> TranscriptionResult | None:
        return self._result

    def emit(self, event: TranscriptionEvent, result: TranscriptionResult | None = None) -> None:
        """Deliver *event*. For terminal events, *result* overrides the derived outcome."""
        if self._closed:
            log.debug('Dropping %s event after close', event.type)
            return

        if isinstance(event, ClosedEvent):
            self.close()
            return

        if event.type in TERMINAL_EVENT_TYPES:
            if self._terminal is not None:
                raise EventProtocolError(
                    f'Second terminal event {event.type!r} after {self._terminal.type!r}',
                )
            self._terminal = event
            self._sink(event)
            self._settle(result or result_for_event(event))
            return

        if isinstance(event, (ProgressEvent, PartialEvent)) and event.progress is not None:
            self._progress = max(self._progress, event.progress)
        self._sink(event)

    def status(self, message: str) -> None:
        self.emit(StatusEvent(message=message))

    def progress(self, step: ProgressStep) -> None:
        """Report *step*, unless the attempt is already past it (e.g. a fallback repeating ``uploading``)."""
        event = ProgressEvent.for_step(step)
        if event.progress <= self._progress:
            log.debug('Skipping %s progress, already at %d%%', step.value, self._progress)
            return
        self.emit(event)

    def complete(self, result: TranscriptionResult, message: str = '') -> None:
        """Emit the terminal event for *result* (unless one was forwarded already), then close."""
        if self._closed:
            return
        if self._terminal is None:
            if result.ok:
                self.emit(FinalEvent(text=result.text or '', message=message), result=result)
            else:
                self.emit(ErrorEvent(message=result.message), result=result)
        self.close()

    def close(self) -> None:
        """Emit ``closed``. A missing terminal event is filled in as an error first."""
        if self._closed:
            return
        if self._terminal is None:
            log.warning('Attempt closed without a terminal event')
            self.emit(
                ErrorEvent(message='Transcription ended without a result'),
                result=TranscriptionResult.failure(
                    FailureCode.UNKNOWN_ERROR,
                    'Transcription ended without a result',
                ),
            )
        self._closed = True
        self._sink(ClosedEvent())

    def _settle(self, result: TranscriptionResult) -> None:
        self._result = result
        if self._on_result is not None:
            self._on_result(result)
