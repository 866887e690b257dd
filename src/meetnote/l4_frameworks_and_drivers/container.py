"""Dependency container — composition root for wiring all layers together."""

from __future__ import annotations

from collections.abc import Callable

from meetnote.l1_entities.config import AppConfig
from meetnote.l1_entities.transcription import ProviderKind
from meetnote.l2_use_cases.ports.provider import TranscriptionProvider
from meetnote.l2_use_cases.ports.transcriber import Transcriber
from meetnote.l2_use_cases.provider_selector import ProviderPlan
from meetnote.l3_interface_adapters.controllers.transcription_controller import TranscriptionController
from meetnote.l3_interface_adapters.gateways.on_device_provider import OnDeviceProvider
from meetnote.l3_interface_adapters.gateways.openai_transcription_provider import DirectCloudProvider
from meetnote.l3_interface_adapters.gateways.relay_provider import BackendRelayProvider
from meetnote.l3_interface_adapters.gateways.subprocess_whisper_transcriber import SubprocessWhisperTranscriber


class DependencyContainer:
    """Creates and wires all concrete instances. Easy to override for testing."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.controller = TranscriptionController(config, self.build_provider)

    def build_provider(self, kind: ProviderKind, plan: ProviderPlan) -> TranscriptionProvider:
        """Fresh adapter per attempt; adapters share nothing but the read-only config."""
        cfg = self.config
        if kind is ProviderKind.ON_DEVICE:
            return OnDeviceProvider(
                model_name=cfg.on_device.model,
                chunk_length=cfg.on_device.chunk_length,
                stride_length=cfg.on_device.stride_length,
                transcriber_factory=self._transcriber_factory(),
            )
        if kind is ProviderKind.DIRECT_CLOUD:
            return DirectCloudProvider(
                api_key=cfg.cloud.api_key,
                base_url=cfg.cloud.base_url,
                model=cfg.cloud.model,
                request_timeout=cfg.request_timeout,
            )
        if kind is ProviderKind.BACKEND_RELAY:
            base_url = plan.relay_base_url or cfg.relay.base_url
            if not base_url:
                raise ValueError('Relay provider requested without a base URL')
            return BackendRelayProvider(
                base_url=base_url,
                model=cfg.relay.model,
                provider_name=cfg.relay.provider,
                request_timeout=cfg.request_timeout,
            )
        raise ValueError(f'Unknown provider kind: {kind}')

    def _transcriber_factory(self) -> Callable[[], Transcriber]:
        if self.config.on_device.in_process:
            from meetnote.l3_interface_adapters.gateways.whisper_transcriber import (  # noqa: PLC0415 -- deferred: pywhispercpp only when inference runs in-process
                WhisperTranscriber,
            )

            return WhisperTranscriber
        return SubprocessWhisperTranscriber
