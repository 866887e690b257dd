"""Localized status narration for transcription events."""

from __future__ import annotations

DEFAULT_LANGUAGE = 'en'

_TEXTS: dict[str, dict[str, str]] = {
    'on_device_loading': {
        'en': 'Loading Whisper model on device',
        'da': 'Indlæser Whisper-modellen på enheden',
    },
    'on_device_downloading': {
        'en': 'Downloading Whisper model {model}: {percent}%',
        'da': 'Downloader Whisper-modellen {model}: {percent}%',
    },
    'on_device_load_timeout': {
        'en': 'Timed out while loading the Whisper model on-device. '
        'Disable on-device mode to fall back to the server.',
        'da': 'Tidsudløb under indlæsning af Whisper-modellen på enheden. '
        'Deaktiver on-device mode for at bruge serveren i stedet.',
    },
    'on_device_running': {
        'en': 'Running Whisper on-device. Starting transcription',
        'da': 'Whisper kører på enheden. Starter transskription',
    },
    'on_device_chunk': {
        'en': 'Transcribed {done} of {total} audio windows',
        'da': 'Transskriberet {done} af {total} lydvinduer',
    },
    'on_device_completed': {
        'en': 'Transcription completed on-device',
        'da': 'Transskription fuldført på enheden',
    },
    'direct_sending': {
        'en': 'Sending audio directly to Whisper (no backend)',
        'da': 'Sender lyd direkte til Whisper (ingen backend)',
    },
    'direct_completed': {
        'en': 'Transcription completed via Whisper',
        'da': 'Transskription fuldført via Whisper',
    },
    'relay_uploading': {
        'en': 'Uploading audio to transcription API',
        'da': "Uploader lyd til transskriptions-API'et",
    },
    'relay_uploaded': {
        'en': 'Upload finished. Connecting to transcription stream...',
        'da': 'Upload fuldført. Forbinder til transskriptionsstream...',
    },
    'relay_upload_complete': {
        'en': 'Transcription upload complete',
        'da': 'Transskriptions-upload fuldført',
    },
    'relay_fallback': {
        'en': 'Transcription API unavailable ({reason}). Falling back to direct Whisper',
        'da': "Transskriptions-API'et er utilgængeligt ({reason}). Skifter til Whisper direkte",
    },
}


def status_text(key: str, language: str, **fields: object) -> str:
    """Return the narration for *key* in *language*, falling back to English."""
    variants = _TEXTS[key]
    template = variants.get(language.split('-')[0].lower(), variants[DEFAULT_LANGUAGE])
    return template.format(**fields) if fields else template


def supported_languages() -> set[str]:
    return {lang for variants in _TEXTS.values() for lang in variants}
