"""Gateway: backend relay — multipart upload, then a websocket event stream."""

from __future__ import annotations

import asyncio
import json
import logging
from urllib.parse import urlsplit, urlunsplit

import aiohttp
from pydantic import ValidationError
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from meetnote.l1_entities.errors import AttemptAborted, TranscriptionError
from meetnote.l1_entities.transcription import (
    ClosedEvent,
    ErrorEvent,
    FailureCode,
    ProgressStep,
    ProviderKind,
    StatusEvent,
    TranscriptionEvent,
    TranscriptionRequest,
    TranscriptionResult,
    parse_event,
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

log = logging.getLogger('meetnote.relay')

STREAM_CLOSED_EARLY = 'Transcription stream closed before a result was delivered'


def to_websocket_url(http_url: str) -> str:
    """Map an http(s) base URL onto its websocket equivalent."""
    parts = urlsplit(http_url)
    return urlunsplit(parts._replace(scheme='wss' if parts.scheme == 'https' else 'ws'))


def decode_stream_message(message: str | bytes) -> TranscriptionEvent:
    """Parse one relay message; anything malformed degrades to a status event carrying the raw text."""
    try:
        return parse_event(message)
    except ValidationError:
        raw = message.decode('utf-8', errors='replace') if isinstance(message, bytes) else message
        snippet = truncate_body(raw) or ''
        log.warning('Unable to parse transcription event: %s', snippet)
        return StatusEvent(message=snippet)


class BackendRelayProvider:
    """Talks to the relay backend: ``POST {base}/transcriptions`` then ``{ws-base}/transcriptions/{id}/stream``."""

    kind = ProviderKind.BACKEND_RELAY

    def __init__(
        self,
        base_url: str,
        model: str = 'whisper-1',
        provider_name: str = 'whisper',
        request_timeout: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip('/')
        self._model = model
        self._provider_name = provider_name
        self._request_timeout = request_timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    def stream_url(self, transcription_id: str) -> str:
        return f'{to_websocket_url(self._base_url)}/transcriptions/{transcription_id}/stream'

    async def attempt(
        self,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        try:
            transcription_id = await self.upload(request, channel, abort)
        except TranscriptionError as exc:
            log.error('Relay upload failed: %s (%s)', exc.message, exc.code.value)
            return exc.to_result()
        return await self.stream(transcription_id, request, channel, abort)

    async def upload(
        self,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> str:
        channel.status(status_text('relay_uploading', request.language))
        channel.progress(ProgressStep.UPLOADING)

        try:
            audio = await abort.run_abortable(asyncio.to_thread(read_recording, request.audio_uri))
        except (OSError, ValueError) as exc:
            raise TranscriptionError(FailureCode.UNKNOWN_ERROR, f'Cannot read recording: {exc}') from exc

        form = aiohttp.FormData()
        form.add_field('file', audio, filename=UPLOAD_FILENAME, content_type=UPLOAD_CONTENT_TYPE)
        form.add_field('provider', self._provider_name)
        form.add_field('model', self._model)
        form.add_field('language', request.language)
        if request.agenda:
            form.add_field('agenda', request.agenda)

        url = f'{self._base_url}/transcriptions'
        log.info('Uploading recording to %s', url)
        try:
            status, body = await abort.run_abortable(self._post(url, form))
        except AttemptAborted:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            if abort.get_abort_reason() is not None:
                raise AttemptAborted(abort.get_abort_reason()) from exc
            raise TranscriptionError(
                FailureCode.NETWORK_ERROR,
                describe_network_error(exc, self._base_url),
            ) from exc

        if not 200 <= status < 300:
            snippet = truncate_body(body)
            raise TranscriptionError(
                FailureCode.HTTP_ERROR,
                snippet or f'Failed to upload audio for transcription (status {status})',
                http_status=status,
                raw_body=snippet,
            )

        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise TranscriptionError(
                FailureCode.INVALID_RESPONSE,
                'Transcription request returned a non-JSON body',
                http_status=status,
                raw_body=body,
            ) from exc

        transcription_id = payload.get('id') if isinstance(payload, dict) else None
        if not transcription_id:
            raise TranscriptionError(
                FailureCode.INVALID_RESPONSE,
                'Transcription request did not return an id',
                http_status=status,
                raw_body=body,
            )

        channel.status(status_text('relay_uploaded', request.language))
        channel.progress(ProgressStep.TRANSCRIBING)
        channel.status(status_text('relay_upload_complete', request.language))
        return str(transcription_id)

    async def stream(
        self,
        transcription_id: str,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        url = self.stream_url(transcription_id)
        log.info('Connecting to transcription stream %s', url)
        try:
            ws = await abort.run_abortable(self._open(url))
        except AttemptAborted as exc:
            return exc.to_result()
        except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
            log.error('Transcription stream connect failed: %s', exc, exc_info=True)
            message = describe_network_error(exc, self._base_url)
            return TranscriptionResult.failure(FailureCode.NETWORK_ERROR, message)

        closing: list[asyncio.Task] = []
        abort.on_abort(lambda: closing.append(asyncio.ensure_future(ws.close())))
        try:
            return await self._forward(ws, channel, abort)
        except AttemptAborted as exc:
            return exc.to_result()
        finally:
            if not closing:
                closing.append(asyncio.ensure_future(ws.close()))
            for outcome in await asyncio.gather(*closing, return_exceptions=True):
                if isinstance(outcome, Exception):
                    log.warning('Closing the transcription stream failed: %s', outcome)

    async def _forward(
        self,
        ws: ClientConnection,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        while channel.terminal is None:
            try:
                message = await abort.run_abortable(ws.recv())
            except ConnectionClosedOK:
                break
            except (ConnectionClosed, WebSocketException, OSError) as exc:
                if abort.get_abort_reason() is not None:
                    raise AttemptAborted(abort.get_abort_reason()) from exc
                log.error('Transcription stream error: %s', exc)
                channel.emit(
                    ErrorEvent(message='Transcription stream error'),
                    result=TranscriptionResult.failure(
                        FailureCode.NETWORK_ERROR,
                        f'Transcription stream error: {exc}',
                    ),
                )
                break

            event = decode_stream_message(message)
            if isinstance(event, ClosedEvent):
                break
            channel.emit(event)

        if channel.result is not None:
            return channel.result
        return TranscriptionResult.failure(FailureCode.NETWORK_ERROR, STREAM_CLOSED_EARLY)

    async def _post(self, url: str, form: aiohttp.FormData) -> tuple[int, str]:
        timeout = aiohttp.ClientTimeout(total=self._request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, data=form) as resp:
                return resp.status, await resp.text()

    async def _open(self, url: str) -> ClientConnection:
        return await connect(url, open_timeout=self._request_timeout)
