"""Use case: run a provider plan, with the single relay → direct-cloud fallback."""

from __future__ import annotations

import logging
from collections.abc import Callable

from meetnote.l1_entities.errors import AttemptAborted, TranscriptionError
from meetnote.l1_entities.transcription import (
    FailureCode,
    ProviderKind,
    TranscriptionRequest,
    TranscriptionResult,
)
from meetnote.l2_use_cases.abort_manager import AbortManager
from meetnote.l2_use_cases.event_channel import EventChannel
from meetnote.l2_use_cases.ports.provider import RelayProvider, TranscriptionProvider
from meetnote.l2_use_cases.provider_selector import ProviderPlan
from meetnote.l2_use_cases.utils.status_text import status_text

log = logging.getLogger('meetnote.transcription')

ProviderFactory = Callable[[ProviderKind, ProviderPlan], TranscriptionProvider]

# Upload failures that justify retrying through direct cloud
FALLBACK_CODES = frozenset({FailureCode.NETWORK_ERROR, FailureCode.HTTP_ERROR})


class RunTranscriptionUseCase:
    """Executes one attempt against the selected providers.

    Fallback happens at most once, only when a relay upload fails at the
    network/HTTP level; stream-side errors and direct-cloud failures are final.
    """

    def __init__(self, provider_factory: ProviderFactory) -> None:
        self._factory = provider_factory

    async def execute(
        self,
        plan: ProviderPlan,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        log.info(
            'Transcription attempt: primary=%s fallback=%s language=%s',
            plan.primary.value,
            plan.fallback.value if plan.fallback else None,
            request.language,
        )
        provider = self._factory(plan.primary, plan)
        if plan.primary is ProviderKind.BACKEND_RELAY:
            return await self._run_relay(provider, plan, request, channel, abort)  # ty: ignore[invalid-argument-type] -- relay factory output satisfies RelayProvider
        return await provider.attempt(request, channel, abort)

    async def _run_relay(
        self,
        relay: RelayProvider,
        plan: ProviderPlan,
        request: TranscriptionRequest,
        channel: EventChannel,
        abort: AbortManager,
    ) -> TranscriptionResult:
        try:
            transcription_id = await relay.upload(request, channel, abort)
        except AttemptAborted as exc:
            return exc.to_result()
        except TranscriptionError as exc:
            if plan.fallback is None or exc.code not in FALLBACK_CODES:
                log.error('Relay upload failed, no fallback: %s', exc.message)
                return exc.to_result()
            log.warning('Relay upload failed (%s); falling back to %s', exc.code.value, plan.fallback.value)
            channel.status(status_text('relay_fallback', request.language, reason=exc.code.value))
            fallback = self._factory(plan.fallback, plan)
            return await fallback.attempt(request, channel, abort)

        log.info('Relay upload completed, streaming %s', transcription_id)
        return await relay.stream(transcription_id, request, channel, abort)
