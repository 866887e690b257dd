"""Use case: decide which provider(s) an attempt uses, and in what order."""

from __future__ import annotations

from dataclasses import dataclass

from meetnote.l1_entities.config import AppConfig
from meetnote.l1_entities.errors import TranscriptionError
from meetnote.l1_entities.transcription import FailureCode, ProviderKind, TranscriptionRequest

NO_SETUP_MESSAGE = (
    'No transcription setup found. Configure a transcription API base URL, '
    'an OpenAI API key, or enable on-device mode.'
)


@dataclass(frozen=True)
class ProviderPlan:
    """Primary provider plus the single fallback allowed after a relay upload failure."""

    primary: ProviderKind
    fallback: ProviderKind | None = None
    relay_base_url: str | None = None


def _relay_fallback(config: AppConfig) -> ProviderKind | None:
    if config.cloud.has_credential and not config.relay.force:
        return ProviderKind.DIRECT_CLOUD
    return None


def select_providers(config: AppConfig, request: TranscriptionRequest) -> ProviderPlan:
    """Evaluate the routing rules once, at attempt start.

    1. On-device requested → on-device only, no fallback.
    2. Relay URL supplied on the request → relay, with the direct-cloud fallback
       when a credential exists and relay use is not forced.
    3. Credential configured, and either no configured relay URL or relay not
       forced → direct cloud.
    4. Configured relay URL → relay.
    5. Nothing configured → TranscriptionError(missing_api_key).
    """
    on_device = request.on_device if request.on_device is not None else config.on_device.enabled
    if on_device:
        return ProviderPlan(primary=ProviderKind.ON_DEVICE)

    if request.relay_base_url:
        return ProviderPlan(
            primary=ProviderKind.BACKEND_RELAY,
            fallback=_relay_fallback(config),
            relay_base_url=request.relay_base_url,
        )

    relay_url = config.relay.base_url
    if config.cloud.has_credential and (not relay_url or not config.relay.force):
        return ProviderPlan(primary=ProviderKind.DIRECT_CLOUD)

    if relay_url:
        return ProviderPlan(
            primary=ProviderKind.BACKEND_RELAY,
            fallback=_relay_fallback(config),
            relay_base_url=relay_url,
        )

    raise TranscriptionError(FailureCode.MISSING_API_KEY, NO_SETUP_MESSAGE)


def attempt_budget(config: AppConfig, plan: ProviderPlan) -> float:
    """Timeout armed at attempt start: model-load budget on device, request budget otherwise."""
    if plan.primary is ProviderKind.ON_DEVICE:
        return config.on_device.load_timeout
    return config.request_timeout
