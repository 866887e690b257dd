"""Domain error types."""

from __future__ import annotations

from meetnote.l1_entities.transcription import AbortReason, FailureCode, TranscriptionResult, truncate_body


class ModelResolutionError(Exception):
    """Raised when a whisper model cannot be resolved to a local path."""


class EventProtocolError(RuntimeError):
    """Raised when an adapter emits a second terminal event for one attempt."""


class TranscriptionError(Exception):
    """An expected transcription failure, carried up to the adapter boundary."""

    def __init__(
        self,
        code: FailureCode,
        message: str,
        *,
        http_status: int | None = None,
        raw_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.raw_body = truncate_body(raw_body)

    def to_result(self) -> TranscriptionResult:
        return TranscriptionResult.failure(
            self.code,
            self.message,
            http_status=self.http_status,
            raw_body=self.raw_body,
        )


_ABORT_CODES = {
    AbortReason.TIMEOUT: FailureCode.TIMEOUT,
    AbortReason.CANCELLED: FailureCode.CANCELLED,
}

_ABORT_MESSAGES = {
    AbortReason.TIMEOUT: 'Transcription timed out',
    AbortReason.CANCELLED: 'Transcription was cancelled',
}


class AttemptAborted(TranscriptionError):
    """Raised when the abort signal interrupts in-flight work."""

    def __init__(self, reason: AbortReason | None, message: str | None = None) -> None:
        code = _ABORT_CODES[reason] if reason is not None else FailureCode.ABORTED
        default = _ABORT_MESSAGES[reason] if reason is not None else 'Transcription was aborted'
        super().__init__(code, message or default)
        self.reason = reason
