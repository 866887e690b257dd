"""Port: transcription provider — one implementation per transport."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from meetnote.l1_entities.transcription import ProviderKind, TranscriptionRequest, TranscriptionResult

if TYPE_CHECKING:
    from meetnote.l2_use_cases.abort_manager import AbortManager
    from meetnote.l2_use_cases.event_channel import EventChannel


class TranscriptionProvider(Protocol):
    """Turns one audio file into transcript text, or a normalized failure.

    Implementations emit status/progress/partial events into *channel* and may
    emit the terminal event themselves; they never raise for expected failures.
    """

    kind: ProviderKind

    async def attempt(
        self,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        """Run the transcription. Returns the terminal result."""
        ...


class RelayProvider(TranscriptionProvider, Protocol):
    """A provider with a separately observable upload phase (used for fallback)."""

    async def upload(
        self,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> str:
        """Upload the audio. Returns the relay's transcription id; raises TranscriptionError."""
        ...

    async def stream(
        self,
        transcription_id: str,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        """Forward relay stream messages into *channel* until a terminal event or close."""
        ...
