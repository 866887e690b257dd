"""Transcription entities — request, event vocabulary, terminal result."""

from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

RAW_BODY_LIMIT = 200  # characters of an upstream body kept for diagnostics


class ProgressStep(str, enum.Enum):
    UPLOADING = 'uploading'
    TRANSCRIBING = 'transcribing'
    COMPLETED = 'completed'


STEP_PERCENT: dict[ProgressStep, int] = {
    ProgressStep.UPLOADING: 10,
    ProgressStep.TRANSCRIBING: 50,
    ProgressStep.COMPLETED: 100,
}


class ProviderKind(str, enum.Enum):
    ON_DEVICE = 'on_device'
    DIRECT_CLOUD = 'direct_cloud'
    BACKEND_RELAY = 'backend_relay'


class AbortReason(str, enum.Enum):
    TIMEOUT = 'timeout'
    CANCELLED = 'cancelled'


class FailureCode(str, enum.Enum):
    MISSING_API_KEY = 'missing_api_key'
    HTTP_ERROR = 'http_error'
    INVALID_RESPONSE = 'invalid_response'
    TIMEOUT = 'timeout'
    ABORTED = 'aborted'
    CANCELLED = 'cancelled'
    NETWORK_ERROR = 'network_error'
    UNKNOWN_ERROR = 'unknown_error'


def truncate_body(body: str | None) -> str | None:
    """Cut an upstream body down to RAW_BODY_LIMIT characters."""
    if body is None:
        return None
    return body[:RAW_BODY_LIMIT]


class TranscriptionRequest(BaseModel):
    """One submitted transcription job. Immutable once built."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    audio_uri: str
    language: str = 'en'
    agenda: str | None = None
    relay_base_url: str | None = None
    on_device: bool | None = None  # None → follow configuration
    abort_signal: asyncio.Event | None = Field(default=None, exclude=True, repr=False)


# --- Event vocabulary ---


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(default_factory=time.time)


class StatusEvent(_Event):
    type: Literal['status'] = 'status'
    message: str = ''


class ProgressEvent(_Event):
    type: Literal['progress'] = 'progress'
    step: ProgressStep | None = None
    progress: int | None = None

    @classmethod
    def for_step(cls, step: ProgressStep) -> ProgressEvent:
        return cls(step=step, progress=STEP_PERCENT[step])


class PartialEvent(_Event):
    type: Literal['partial'] = 'partial'
    text: str = ''
    progress: int | None = None
    message: str = ''


class FinalEvent(_Event):
    type: Literal['final'] = 'final'
    text: str = ''
    message: str = ''


class ErrorEvent(_Event):
    type: Literal['error'] = 'error'
    message: str = ''


class ClosedEvent(_Event):
    type: Literal['closed'] = 'closed'


TranscriptionEvent = Annotated[
    Union[StatusEvent, ProgressEvent, PartialEvent, FinalEvent, ErrorEvent, ClosedEvent],
    Field(discriminator='type'),
]

TERMINAL_EVENT_TYPES = frozenset({'final', 'error'})

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(TranscriptionEvent)


def parse_event(payload: str | bytes | dict) -> TranscriptionEvent:
    """Decode a wire payload (JSON text or already-decoded dict) into an event.

    Raises pydantic.ValidationError when the payload is not a known event.
    """
    if isinstance(payload, dict):
        return _EVENT_ADAPTER.validate_python(payload)
    return _EVENT_ADAPTER.validate_json(payload)


# --- Terminal outcome ---


@dataclass(frozen=True)
class TranscriptionResult:
    """Outcome of one attempt — either success with text or failure with a code."""

    text: str | None = None
    code: FailureCode | None = None
    message: str = ''
    http_status: int | None = None
    raw_body: str | None = None

    def __post_init__(self) -> None:
        if self.raw_body is not None and len(self.raw_body) > RAW_BODY_LIMIT:
            object.__setattr__(self, 'raw_body', self.raw_body[:RAW_BODY_LIMIT])

    @property
    def ok(self) -> bool:
        return self.code is None and self.text is not None

    @classmethod
    def success(cls, text: str) -> TranscriptionResult:
        return cls(text=text)

    @classmethod
    def failure(
        cls,
        code: FailureCode,
        message: str,
        *,
        http_status: int | None = None,
        raw_body: str | None = None,
    ) -> TranscriptionResult:
        return cls(code=code, message=message, http_status=http_status, raw_body=raw_body)
