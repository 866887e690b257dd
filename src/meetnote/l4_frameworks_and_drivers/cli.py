"""CLI entry point for meetnote."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from meetnote import __version__


def _cli_overrides(language, relay_url, on_device, force_relay) -> dict:
    overrides: dict = {}
    if language:
        overrides['language'] = language
    if relay_url:
        overrides.setdefault('relay', {})['base_url'] = relay_url
    if force_relay:
        overrides.setdefault('relay', {})['force'] = True
    if on_device is not None:
        overrides.setdefault('on_device', {})['enabled'] = on_device
    return overrides


@click.command()
@click.argument('audio_file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '-c',
    '--config',
    'config_path',
    default=None,
    type=click.Path(exists=True),
    help='Path to YAML config file.',
)
@click.option('-l', '--language', default=None, help="Recording language (e.g. 'en', 'da').")
@click.option('-a', '--agenda', default=None, help='Meeting agenda, passed to the model as a prompt.')
@click.option('--relay-url', default=None, help='Base URL of the transcription relay backend.')
@click.option(
    '--on-device/--no-on-device',
    default=None,
    help='Force (or forbid) on-device Whisper transcription.',
)
@click.option('--force-relay', is_flag=True, default=False, help='Use the relay even when an API key is set.')
@click.option(
    '--log-file',
    default=None,
    type=click.Path(dir_okay=False),
    help='Write debug logs to this file.',
)
@click.version_option(version=__version__)
def cli(config_path, audio_file, language, agenda, relay_url, on_device, force_relay, log_file):
    """meetnote -- transcribe a meeting recording on-device, via OpenAI, or through a relay."""
    from meetnote.l1_entities.transcription import (  # noqa: PLC0415 -- deferred: pydantic models not loaded on --help
        TranscriptionRequest,
    )
    from meetnote.l3_interface_adapters.gateways.yaml_config_loader import (  # noqa: PLC0415 -- deferred: yaml stack not loaded on --help
        YamlConfigLoader,
    )
    from meetnote.l4_frameworks_and_drivers.config import (  # noqa: PLC0415 -- deferred: not needed for --help
        build_app_config,
    )
    from meetnote.l4_frameworks_and_drivers.file_runner import (  # noqa: PLC0415 -- deferred: network stack not loaded on --help
        transcribe_file,
    )

    if log_file:
        from meetnote.l4_frameworks_and_drivers.logging_setup import (  # noqa: PLC0415 -- deferred: only with --log-file
            setup_file_logging,
        )

        setup_file_logging(Path(log_file))

    try:
        raw = YamlConfigLoader().load_raw(config_path)
        config = build_app_config(raw, overrides=_cli_overrides(language, relay_url, on_device, force_relay))
    except (FileNotFoundError, ValueError, ValidationError) as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)

    request_fields: dict = {'audio_uri': str(Path(audio_file).resolve())}
    if language:
        request_fields['language'] = language
    if agenda:
        request_fields['agenda'] = agenda
    request = TranscriptionRequest(**request_fields)

    code = asyncio.run(transcribe_file(config, request))
    if code:
        sys.exit(code)
