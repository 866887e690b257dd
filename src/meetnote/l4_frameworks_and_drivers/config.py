"""Configuration defaults and environment overrides — lives in L4, not domain."""

from __future__ import annotations

import copy
import os
from collections.abc import Mapping

from meetnote.l1_entities.config import AppConfig
from meetnote.l3_interface_adapters.gateways.yaml_config_loader import deep_merge

APP_CONFIG_DEFAULTS: dict = {
    'cloud': {
        'api_key': None,
        'base_url': 'https://api.openai.com/v1',
        'model': 'whisper-1',
    },
    'relay': {
        'base_url': None,
        'force': False,
        'provider': 'whisper',
        'model': 'whisper-1',
    },
    'on_device': {
        'enabled': False,
        'model': 'tiny',
        'load_timeout': 45.0,
        'chunk_length': 30.0,
        'stride_length': 5.0,
        'in_process': False,
    },
    'request_timeout': 60.0,
    'language': 'en',
}

ENV_RELAY_URL = 'MEETNOTE_RELAY_URL'
ENV_API_KEY = 'OPENAI_API_KEY'
ENV_ON_DEVICE = 'MEETNOTE_ON_DEVICE'
ENV_FORCE_RELAY = 'MEETNOTE_FORCE_RELAY'

_TRUE = {'1', 'true', 'yes', 'on'}


def _flag(value: str) -> bool:
    return value.strip().lower() in _TRUE


def env_overrides(environ: Mapping[str, str] | None = None) -> dict:
    """Translate the supported environment variables into a config override dict."""
    env = os.environ if environ is None else environ
    overrides: dict = {}
    if env.get(ENV_RELAY_URL):
        overrides.setdefault('relay', {})['base_url'] = env[ENV_RELAY_URL]
    if env.get(ENV_FORCE_RELAY):
        overrides.setdefault('relay', {})['force'] = _flag(env[ENV_FORCE_RELAY])
    if env.get(ENV_API_KEY):
        overrides.setdefault('cloud', {})['api_key'] = env[ENV_API_KEY]
    if env.get(ENV_ON_DEVICE):
        overrides.setdefault('on_device', {})['enabled'] = _flag(env[ENV_ON_DEVICE])
    return overrides


def build_app_config(
    raw: dict,
    environ: Mapping[str, str] | None = None,
    overrides: dict | None = None,
) -> AppConfig:
    """Layer defaults < *raw* (YAML) < environment < *overrides* (CLI), then validate once."""
    merged = copy.deepcopy(APP_CONFIG_DEFAULTS)
    deep_merge(merged, copy.deepcopy(raw))
    deep_merge(merged, env_overrides(environ))
    if overrides:
        deep_merge(merged, copy.deepcopy(overrides))
    return AppConfig.model_validate(merged)
