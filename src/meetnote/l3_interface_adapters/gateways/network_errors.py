"""Gateway helpers: user-actionable descriptions of transport failures."""

from __future__ import annotations

import asyncio
import socket


def is_connectivity_error(exc: BaseException) -> bool:
    """True when *exc* means the endpoint could not be reached at all."""
    return isinstance(exc, (ConnectionError, socket.gaierror, asyncio.TimeoutError)) or 'connect' in str(exc).lower()


def describe_network_error(exc: BaseException, base_url: str | None) -> str:
    if is_connectivity_error(exc):
        target = base_url or 'transcription endpoint'
        return f'Network request failed. Check your connection or that the transcription API ({target}) is reachable.'
    message = str(exc)
    return message or type(exc).__name__
