"""Gateway: direct Whisper transcription via the OpenAI API — implements TranscriptionProvider.

Works with any OpenAI-compatible ``/audio/transcriptions`` endpoint.
"""

from __future__ import annotations

import asyncio
import logging

import openai

from meetnote.l1_entities.errors import AttemptAborted, TranscriptionError
from meetnote.l1_entities.transcription import (
    FailureCode,
    ProgressStep,
    ProviderKind,
    TranscriptionRequest,
    TranscriptionResult,
    truncate_body,
)
from meetnote.l2_use_cases.abort_manager import AbortManager
from meetnote.l2_use_cases.event_channel import EventChannel
from meetnote.l2_use_cases.utils.status_text import status_text
from meetnote.l3_interface_adapters.gateways.audio_file_loader import (
    UPLOAD_CONTENT_TYPE,
    UPLOAD_FILENAME,
    read_recording,
)
from meetnote.l3_interface_adapters.gateways.network_errors import describe_network_error

log = logging.getLogger('meetnote.cloud')

OPENAI_BASE_URL = 'https://api.openai.com/v1'


class DirectCloudProvider:
    """Wraps openai.AsyncOpenAI audio transcriptions to implement the provider protocol."""

    kind = ProviderKind.DIRECT_CLOUD

    def __init__(
        self,
        api_key: str | None,
        base_url: str = OPENAI_BASE_URL,
        model: str = 'whisper-1',
        request_timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._model = model
        self._request_timeout = request_timeout

    async def attempt(
        self,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        try:
            text = await self._transcribe(request, channel, abort)
        except TranscriptionError as exc:
            log.error('Direct Whisper API failed: %s (%s)', exc.message, exc.code.value)
            return exc.to_result()

        result = TranscriptionResult.success(text)
        channel.progress(ProgressStep.COMPLETED)
        channel.complete(result, message=status_text('direct_completed', request.language))
        return result

    async def _transcribe(
        self,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> str:
        if not self._api_key:
            raise TranscriptionError(
                FailureCode.MISSING_API_KEY,
                'Missing OpenAI API key for direct Whisper transcription',
            )

        try:
            audio = await abort.run_abortable(asyncio.to_thread(read_recording, request.audio_uri))
        except (OSError, ValueError) as exc:
            raise TranscriptionError(FailureCode.UNKNOWN_ERROR, f'Cannot read recording: {exc}') from exc

        kwargs: dict = {
            'model': self._model,
            'file': (UPLOAD_FILENAME, audio, UPLOAD_CONTENT_TYPE),
            'language': request.language,
        }
        if request.agenda:
            kwargs['prompt'] = request.agenda

        channel.status(status_text('direct_sending', request.language))
        channel.progress(ProgressStep.UPLOADING)

        client = openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            max_retries=0,
            timeout=self._request_timeout,
        )
        try:
            transcription = await abort.run_abortable(client.audio.transcriptions.create(**kwargs))
        except AttemptAborted:
            raise
        except openai.APIStatusError as e:
            body = truncate_body(e.response.text)
            raise TranscriptionError(
                FailureCode.HTTP_ERROR,
                body or f'Whisper request failed (status {e.status_code})',
                http_status=e.status_code,
                raw_body=body,
            ) from e
        except openai.APITimeoutError as e:
            raise TranscriptionError(FailureCode.TIMEOUT, 'Whisper request timed out') from e
        except openai.APIConnectionError as e:
            if abort.get_abort_reason() is not None:
                raise AttemptAborted(abort.get_abort_reason()) from e
            raise TranscriptionError(
                FailureCode.NETWORK_ERROR,
                describe_network_error(e, self._base_url),
            ) from e
        finally:
            await client.close()

        channel.progress(ProgressStep.TRANSCRIBING)

        text = transcription if isinstance(transcription, str) else getattr(transcription, 'text', None)
        if not text:
            raise TranscriptionError(
                FailureCode.INVALID_RESPONSE,
                'Transcription response did not include text',
                raw_body=str(transcription),
            )
        log.info('Direct Whisper transcription received (%d chars)', len(text))
        return text
