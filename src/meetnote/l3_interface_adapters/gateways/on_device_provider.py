"""Gateway: on-device Whisper (whisper.cpp) — implements TranscriptionProvider."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from meetnote.l1_entities.errors import AttemptAborted, ModelResolutionError, TranscriptionError
from meetnote.l1_entities.transcription import (
    AbortReason,
    FailureCode,
    PartialEvent,
    ProgressStep,
    ProviderKind,
    TranscriptionRequest,
    TranscriptionResult,
)
from meetnote.l2_use_cases.abort_manager import AbortManager
from meetnote.l2_use_cases.chunked_transcribe_use_case import ChunkedTranscribeUseCase
from meetnote.l2_use_cases.event_channel import EventChannel
from meetnote.l2_use_cases.ports.model_resolver import ModelResolver
from meetnote.l2_use_cases.ports.transcriber import Transcriber
from meetnote.l2_use_cases.utils.status_text import status_text
from meetnote.l3_interface_adapters.gateways.audio_file_loader import audio_path_from_uri, load_audio_file

log = logging.getLogger('meetnote.on_device')

_DOWNLOAD_REPORT_STEP = 10  # percent between download status events


def _default_transcriber() -> Transcriber:
    from meetnote.l3_interface_adapters.gateways.subprocess_whisper_transcriber import (  # noqa: PLC0415 -- deferred: multiprocessing only when on-device runs
        SubprocessWhisperTranscriber,
    )

    return SubprocessWhisperTranscriber()


def _default_resolver(on_progress: Callable[[int], None]) -> ModelResolver:
    from meetnote.l3_interface_adapters.gateways.hf_model_resolver import (  # noqa: PLC0415 -- deferred: huggingface_hub only when on-device runs
        HfModelResolver,
    )

    return HfModelResolver(on_progress=on_progress)


class OnDeviceProvider:
    """Resolves and loads a whisper.cpp model, decodes the recording, transcribes it in windows.

    The attempt's timer covers model resolution and load only; it is
    cleared once the model is ready. Cancellation still stops inference by
    terminating the transcriber.
    """

    kind = ProviderKind.ON_DEVICE

    def __init__(
        self,
        model_name: str = 'tiny',
        chunk_length: float = 30.0,
        stride_length: float = 5.0,
        transcriber_factory: Callable[[], Transcriber] = _default_transcriber,
        resolver_factory: Callable[[Callable[[int], None]], ModelResolver] = _default_resolver,
    ) -> None:
        self._model_name = model_name
        self._chunk_length = chunk_length
        self._stride_length = stride_length
        self._transcriber_factory = transcriber_factory
        self._resolver_factory = resolver_factory

    async def attempt(
        self,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        transcriber = self._transcriber_factory()
        abort.on_abort(transcriber.terminate)
        try:
            text = await self._transcribe(transcriber, request, channel, abort)
        except TranscriptionError as exc:
            log.error('On-device whisper failed: %s (%s)', exc.message, exc.code.value)
            return exc.to_result()
        finally:
            await asyncio.to_thread(transcriber.close)

        result = TranscriptionResult.success(text)
        channel.progress(ProgressStep.COMPLETED)
        channel.complete(result, message=status_text('on_device_completed', request.language))
        return result

    async def _transcribe(
        self,
        transcriber: Transcriber,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> str:
        language = request.language
        channel.status(status_text('on_device_loading', language))
        channel.progress(ProgressStep.UPLOADING)

        await self._load_model(transcriber, channel, abort, language)
        abort.clear_timeout_if_needed()

        channel.status(status_text('on_device_running', language))
        channel.progress(ProgressStep.TRANSCRIBING)

        try:
            path = audio_path_from_uri(request.audio_uri)
            audio = await abort.run_abortable(asyncio.to_thread(load_audio_file, path))
        except (FileNotFoundError, RuntimeError, ValueError) as exc:
            raise TranscriptionError(FailureCode.UNKNOWN_ERROR, f'Cannot decode recording: {exc}') from exc

        use_case = ChunkedTranscribeUseCase(
            transcriber=transcriber,
            language=language,
            chunk_length=self._chunk_length,
            stride_length=self._stride_length,
            initial_prompt=request.agenda or '',
        )
        total = use_case.window_count(audio)
        log.info('On-device transcription: %d samples in %d windows', len(audio), total)

        for window in use_case.windows(audio):
            abort.raise_if_aborted()
            try:
                segments = await abort.run_abortable(asyncio.to_thread(use_case.transcribe_window, window))
            except (RuntimeError, TimeoutError) as exc:
                raise TranscriptionError(FailureCode.UNKNOWN_ERROR, f'On-device inference failed: {exc}') from exc
            use_case.apply_result(window, segments)
            done = window.index + 1
            channel.emit(
                PartialEvent(
                    text=use_case.text,
                    progress=50 + (49 * done) // total,
                    message=status_text('on_device_chunk', language, done=done, total=total),
                )
            )

        text = use_case.text
        if not text:
            raise TranscriptionError(FailureCode.INVALID_RESPONSE, 'Whisper on-device did not produce text')
        return text

    async def _load_model(
        self,
        transcriber: Transcriber,
        channel: EventChannel,
        abort: AbortManager,
        language: str,
    ) -> None:
        loop = asyncio.get_running_loop()
        reported = {'percent': -_DOWNLOAD_REPORT_STEP}

        def _report(percent: int) -> None:
            if percent < 100 and percent - reported['percent'] < _DOWNLOAD_REPORT_STEP:
                return
            reported['percent'] = percent
            channel.status(status_text('on_device_downloading', language, model=self._model_name, percent=percent))

        def _on_progress(percent: int) -> None:
            # called from the download thread
            loop.call_soon_threadsafe(_report, percent)

        resolver = self._resolver_factory(_on_progress)
        try:
            model_path = await abort.run_abortable(asyncio.to_thread(resolver.resolve, self._model_name))
            await abort.run_abortable(asyncio.to_thread(transcriber.load_model, model_path))
        except AttemptAborted as exc:
            if exc.reason is AbortReason.TIMEOUT:
                raise AttemptAborted(exc.reason, status_text('on_device_load_timeout', language)) from exc
            raise
        except (ModelResolutionError, RuntimeError, TimeoutError, OSError) as exc:
            raise TranscriptionError(
                FailureCode.UNKNOWN_ERROR,
                f'Failed to load the on-device Whisper model: {exc}',
            ) from exc
        log.info('On-device model ready: %s', model_path)
