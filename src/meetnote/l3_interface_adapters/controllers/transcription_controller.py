"""TranscriptionController — the single entry point the UI uses to transcribe a recording."""

from __future__ import annotations

import asyncio
import logging

from meetnote.l1_entities.config import AppConfig
from meetnote.l1_entities.errors import TranscriptionError
from meetnote.l1_entities.transcription import (
    AbortReason,
    FailureCode,
    ProviderKind,
    TranscriptionRequest,
    TranscriptionResult,
)
from meetnote.l2_use_cases.abort_manager import AbortManager
from meetnote.l2_use_cases.event_channel import EventChannel, EventSink
from meetnote.l2_use_cases.provider_selector import ProviderPlan, attempt_budget, select_providers
from meetnote.l2_use_cases.transcription_use_case import ProviderFactory, RunTranscriptionUseCase
from meetnote.l2_use_cases.utils.status_text import status_text

log = logging.getLogger('meetnote.transcription')


class TranscriptionHandle:
    """Caller's grip on one attempt: cancel it, or await its single outcome."""

    def __init__(self) -> None:
        self._outcome: asyncio.Future[TranscriptionResult] = asyncio.get_running_loop().create_future()
        self._abort: AbortManager | None = None
        self._task: asyncio.Task | None = None

    @property
    def done(self) -> bool:
        return self._outcome.done()

    @property
    def abort_manager(self) -> AbortManager | None:
        return self._abort

    def cancel(self) -> None:
        """Stop the attempt. Idempotent; a no-op once the outcome is settled."""
        if self._abort is None or self.done:
            return
        self._abort.request_abort(AbortReason.CANCELLED)

    async def result(self) -> TranscriptionResult:
        """First terminal outcome or timeout, whichever comes first."""
        return await asyncio.shield(self._outcome)

    async def wait_closed(self) -> None:
        """Wait until the attempt has emitted ``closed`` and released its resources."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def _bind(self, abort: AbortManager, task: asyncio.Task) -> None:
        self._abort = abort
        self._task = task
        abort.timeout_future.add_done_callback(self._on_timeout_done)

    def _settle(self, result: TranscriptionResult) -> None:
        if not self._outcome.done():
            self._outcome.set_result(result)

    def _on_timeout_done(self, fut: asyncio.Future) -> None:
        if not fut.cancelled():
            self._settle(fut.result())


class TranscriptionController:
    """Wires provider selection, cancellation and event normalization for each call.

    Holds only read-only configuration; every ``transcribe()`` call gets its
    own AbortManager, EventChannel and provider instances.
    """

    def __init__(self, config: AppConfig, provider_factory: ProviderFactory) -> None:
        self._config = config
        self._use_case = RunTranscriptionUseCase(provider_factory)

    def transcribe(self, request: TranscriptionRequest, on_event: EventSink) -> TranscriptionHandle:
        """Start an attempt and return its handle. Must be called on a running event loop."""
        request = self._with_defaults(request)
        handle = TranscriptionHandle()
        channel = EventChannel(on_event, on_result=handle._settle)

        try:
            plan = select_providers(self._config, request)
        except TranscriptionError as exc:
            log.error('Transcription not started: %s', exc.message)
            channel.complete(exc.to_result())
            return handle

        abort = AbortManager(
            timeout=attempt_budget(self._config, plan),
            on_timeout=lambda: self._timeout_result(plan, request),
            external_signal=request.abort_signal,
        )
        task = asyncio.get_running_loop().create_task(self._run(plan, request, channel, abort, handle))
        handle._bind(abort, task)
        return handle

    async def transcribe_to_result(
        self,
        request: TranscriptionRequest,
        on_event: EventSink | None = None,
    ) -> TranscriptionResult:
        """Awaited convenience: run one attempt and return its outcome once closed."""
        handle = self.transcribe(request, on_event or (lambda event: None))
        result = await handle.result()
        await handle.wait_closed()
        return result

    async def _run(
        self,
        plan: ProviderPlan,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
        handle: TranscriptionHandle,
    ) -> None:
        try:
            result = await self._use_case.execute(plan, request, channel, abort)
        except asyncio.CancelledError:
            result = TranscriptionResult.failure(FailureCode.ABORTED, 'Transcription was aborted')
            self._finish(channel, abort, handle, result)
            raise
        except Exception as exc:
            log.error('Unexpected transcription failure', exc_info=True)
            result = TranscriptionResult.failure(FailureCode.UNKNOWN_ERROR, f'{type(exc).__name__}: {exc}')
        self._finish(channel, abort, handle, result)

    @staticmethod
    def _finish(
        channel: EventChannel,
        abort: AbortManager,
        handle: TranscriptionHandle,
        result: TranscriptionResult,
    ) -> None:
        abort.release()
        try:
            channel.complete(result)
        finally:
            handle._settle(channel.result or result)
        log.info(
            'Transcription finished: ok=%s code=%s',
            result.ok,
            result.code.value if result.code else None,
        )

    def _with_defaults(self, request: TranscriptionRequest) -> TranscriptionRequest:
        if 'language' in request.model_fields_set:
            return request
        return request.model_copy(update={'language': self._config.language})

    @staticmethod
    def _timeout_result(plan: ProviderPlan, request: TranscriptionRequest) -> TranscriptionResult:
        if plan.primary is ProviderKind.ON_DEVICE:
            message = status_text('on_device_load_timeout', request.language)
        else:
            message = 'Transcription timed out'
        return TranscriptionResult.failure(FailureCode.TIMEOUT, message)
