"""File runner — headless transcription of one recording with console progress."""

from __future__ import annotations

import asyncio
import signal
import sys

from meetnote.l1_entities.config import AppConfig
from meetnote.l1_entities.transcription import (
    ErrorEvent,
    FailureCode,
    PartialEvent,
    ProgressEvent,
    StatusEvent,
    TranscriptionEvent,
    TranscriptionRequest,
)
from meetnote.l4_frameworks_and_drivers.container import DependencyContainer

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def _err(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _with_percent(progress: int | None, text: str) -> str:
    if progress is None:
        return text
    return f'[{progress:3d}%] {text}'.rstrip()


def print_event(event: TranscriptionEvent) -> None:
    """Console sink: everything but the transcript itself goes to stderr.

    Relayed events may omit their optional fields; only what is set is printed.
    """
    if isinstance(event, StatusEvent):
        _err(event.message)
    elif isinstance(event, ProgressEvent):
        line = _with_percent(event.progress, event.step.value if event.step else '')
        if line:
            _err(line)
    elif isinstance(event, PartialEvent):
        line = _with_percent(event.progress, event.message)
        if line:
            _err(line)
    elif isinstance(event, ErrorEvent):
        _err(f'Error: {event.message}')


async def transcribe_file(
    config: AppConfig,
    request: TranscriptionRequest,
    container: DependencyContainer | None = None,
) -> int:
    """Run one attempt, print the transcript to stdout and return the process exit code."""
    container = container or DependencyContainer(config)
    handle = container.controller.transcribe(request, print_event)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, handle.cancel)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False  # Windows, or not on the main thread

    try:
        result = await handle.result()
        await handle.wait_closed()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)

    if result.ok:
        print(result.text, flush=True)
        return 0
    if result.code is FailureCode.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_FAILURE
