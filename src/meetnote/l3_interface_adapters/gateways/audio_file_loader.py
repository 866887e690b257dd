"""Gateway: recording access — URI resolution, raw bytes for upload, PCM decode via ffmpeg."""

from __future__ import annotations

import shutil
import subprocess  # noqa: S404 -- intentional: shells out to ffmpeg with a fixed arg list, not shell=True
from pathlib import Path
from urllib.parse import unquote, urlparse

import numpy as np

from meetnote.l1_entities.audio_constants import SAMPLE_RATE

_FFMPEG_TIMEOUT = 300  # seconds

UPLOAD_FILENAME = 'recording.m4a'
UPLOAD_CONTENT_TYPE = 'audio/m4a'


def audio_path_from_uri(audio_uri: str) -> Path:
    """Map a recorder URI (``file://...`` or a plain path) to a local path."""
    parsed = urlparse(audio_uri)
    if parsed.scheme == 'file':
        return Path(unquote(parsed.path))
    if parsed.scheme and len(parsed.scheme) > 1:
        raise ValueError(f'Unsupported audio URI scheme: {parsed.scheme}')
    return Path(audio_uri)


def read_recording(audio_uri: str) -> bytes:
    """Read the recording's encoded bytes for multipart upload."""
    path = audio_path_from_uri(audio_uri)
    if not path.exists():
        raise FileNotFoundError(f'Audio file not found: {path}')
    return path.read_bytes()


def load_audio_file(path: Path) -> np.ndarray:
    """Load *path* using ffmpeg, returning float32 mono PCM at 16 kHz.

    Supports any format ffmpeg can decode: M4A, WAV, FLAC, MP3, OGG, MP4, etc.

    Raises:
        FileNotFoundError: audio file does not exist.
        RuntimeError: ffmpeg is missing, conversion failed, timed out, or
                      the file contains no decodable audio.
    """
    if not path.exists():
        raise FileNotFoundError(f'Audio file not found: {path}')

    if shutil.which('ffmpeg') is None:
        raise RuntimeError(
            'ffmpeg is required but not found on PATH.\n  macOS:  brew install ffmpeg\n  Debian: apt install ffmpeg'
        )

    cmd = [
        'ffmpeg',
        '-i',
        str(path),
        '-ar',
        str(SAMPLE_RATE),
        '-ac',
        '1',
        '-f',
        'f32le',
        '-v',
        'quiet',
        'pipe:1',
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, timeout=_FFMPEG_TIMEOUT)  # noqa: S603
    except subprocess.TimeoutExpired as exc:
        raise RuntimeError(f'ffmpeg timed out after {_FFMPEG_TIMEOUT}s processing: {path}') from exc
    except OSError as exc:
        raise RuntimeError(f'Failed to launch ffmpeg: {exc}') from exc

    if result.returncode != 0:
        stderr = result.stderr.decode('utf-8', errors='replace').strip()
        raise RuntimeError(f'ffmpeg exited with code {result.returncode} for: {path}\n{stderr}')

    if not result.stdout:
        raise RuntimeError(f'ffmpeg produced no audio output for: {path}')

    audio = np.frombuffer(result.stdout, dtype=np.float32)
    if len(audio) == 0:
        raise RuntimeError(f'Audio file appears to be empty: {path}')

    return audio
