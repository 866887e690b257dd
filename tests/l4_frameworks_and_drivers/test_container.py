"""Tests for the dependency container's provider wiring."""

from __future__ import annotations

import pytest

from meetnote.l1_entities.transcription import ProviderKind
from meetnote.l2_use_cases.provider_selector import ProviderPlan
from meetnote.l3_interface_adapters.controllers.transcription_controller import TranscriptionController
from meetnote.l3_interface_adapters.gateways.on_device_provider import OnDeviceProvider
from meetnote.l3_interface_adapters.gateways.openai_transcription_provider import DirectCloudProvider
from meetnote.l3_interface_adapters.gateways.relay_provider import BackendRelayProvider
from meetnote.l3_interface_adapters.gateways.subprocess_whisper_transcriber import SubprocessWhisperTranscriber
from meetnote.l3_interface_adapters.gateways.whisper_transcriber import WhisperTranscriber
from meetnote.l4_frameworks_and_drivers.container import DependencyContainer
from tests.conftest import make_config


class TestDependencyContainer:
    def test_controller_is_built(self, default_config):
        assert isinstance(DependencyContainer(default_config).controller, TranscriptionController)

    def test_direct_cloud(self):
        container = DependencyContainer(make_config({'cloud': {'api_key': 'sk', 'model': 'whisper-large'}}))
        provider = container.build_provider(ProviderKind.DIRECT_CLOUD, ProviderPlan(primary=ProviderKind.DIRECT_CLOUD))
        assert isinstance(provider, DirectCloudProvider)
        assert provider._model == 'whisper-large'
        assert provider._api_key == 'sk'

    def test_relay_uses_plan_url(self):
        container = DependencyContainer(make_config({'relay': {'base_url': 'https://config.example.com'}}))
        plan = ProviderPlan(primary=ProviderKind.BACKEND_RELAY, relay_base_url='https://request.example.com/')
        provider = container.build_provider(ProviderKind.BACKEND_RELAY, plan)
        assert isinstance(provider, BackendRelayProvider)
        assert provider.base_url == 'https://request.example.com'

    def test_relay_without_url_rejected(self, default_config):
        container = DependencyContainer(default_config)
        with pytest.raises(ValueError, match='base URL'):
            container.build_provider(ProviderKind.BACKEND_RELAY, ProviderPlan(primary=ProviderKind.BACKEND_RELAY))

    def test_on_device(self):
        container = DependencyContainer(make_config({'on_device': {'model': 'base', 'chunk_length': 20}}))
        provider = container.build_provider(ProviderKind.ON_DEVICE, ProviderPlan(primary=ProviderKind.ON_DEVICE))
        assert isinstance(provider, OnDeviceProvider)
        assert provider._model_name == 'base'
        assert provider._chunk_length == 20

    def test_fresh_instance_per_call(self, cloud_config):
        container = DependencyContainer(cloud_config)
        plan = ProviderPlan(primary=ProviderKind.DIRECT_CLOUD)
        assert container.build_provider(ProviderKind.DIRECT_CLOUD, plan) is not container.build_provider(
            ProviderKind.DIRECT_CLOUD, plan
        )

    def test_on_device_runs_in_subprocess_by_default(self, default_config):
        container = DependencyContainer(default_config)
        provider = container.build_provider(ProviderKind.ON_DEVICE, ProviderPlan(primary=ProviderKind.ON_DEVICE))
        assert provider._transcriber_factory is SubprocessWhisperTranscriber

    def test_on_device_in_process(self):
        container = DependencyContainer(make_config({'on_device': {'in_process': True}}))
        provider = container.build_provider(ProviderKind.ON_DEVICE, ProviderPlan(primary=ProviderKind.ON_DEVICE))
        assert provider._transcriber_factory is WhisperTranscriber
