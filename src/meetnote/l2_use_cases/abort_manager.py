"""Use case: per-attempt cancellation — abort reason tracking and the timeout race."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from meetnote.l1_entities.errors import AttemptAborted
from meetnote.l1_entities.transcription import AbortReason, TranscriptionResult

log = logging.getLogger('meetnote.abort')

T = TypeVar('T')


class AbortManager:
    """Owns the abort signal of a single attempt.

    The first recorded reason wins; recording it is the only thing that sets
    the signal. The timeout timer is armed on construction, so the manager
    must be created on a running event loop.
    """

    def __init__(
        self,
        timeout: float,
        on_timeout: Callable[[], TranscriptionResult],
        external_signal: asyncio.Event | None = None,
    ) -> None:
        loop = asyncio.get_running_loop()
        self._signal = asyncio.Event()
        self._reason: AbortReason | None = None
        self._on_timeout = on_timeout
        self._callbacks: list[Callable[[], object]] = []

        self.timeout = timeout
        self.timeout_future: asyncio.Future[TranscriptionResult] = loop.create_future()
        self._timer: asyncio.TimerHandle | None = loop.call_later(timeout, self._expire)

        self._watcher: asyncio.Task | None = None
        if external_signal is not None:
            if external_signal.is_set():
                self.request_abort(AbortReason.CANCELLED)
            else:
                self._watcher = loop.create_task(self._watch(external_signal))

    @property
    def signal(self) -> asyncio.Event:
        return self._signal

    @property
    def aborted(self) -> bool:
        return self._signal.is_set()

    def get_abort_reason(self) -> AbortReason | None:
        return self._reason

    def request_abort(self, reason: AbortReason) -> AbortReason:
        """Record *reason* if none is recorded yet and set the signal.

        Returns the recorded reason, which may predate this call.
        """
        if self._reason is not None:
            return self._reason
        self._reason = reason
        self._signal.set()
        log.info('Attempt aborted: %s', reason.value)
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                log.warning('Abort callback failed', exc_info=True)
        return reason

    def on_abort(self, callback: Callable[[], object]) -> None:
        """Run *callback* once when the attempt is aborted (immediately if it already was)."""
        if self._reason is not None:
            callback()
            return
        self._callbacks.append(callback)

    def clear_timeout_if_needed(self) -> None:
        """Disarm the pending timer. Call on every exit path."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self.timeout_future.done():
            self.timeout_future.cancel()

    def release(self) -> None:
        """End of attempt: disarm the timer, stop watching the external signal, drop callbacks."""
        self.clear_timeout_if_needed()
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None
        self._callbacks.clear()

    async def wait(self) -> AbortReason | None:
        await self._signal.wait()
        return self._reason

    def raise_if_aborted(self) -> None:
        if self._signal.is_set():
            raise AttemptAborted(self._reason)

    async def run_abortable(self, aw: Awaitable[T]) -> T:
        """Await *aw* unless the attempt is aborted first.

        On abort the in-flight work is cancelled and AttemptAborted is raised.
        """
        if self._signal.is_set():
            if asyncio.iscoroutine(aw):
                aw.close()
            raise AttemptAborted(self._reason)

        work = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._signal.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()

        if not self._signal.is_set():
            return work.result()

        await asyncio.wait({work})
        if not work.cancelled():
            work.exception()  # retrieved; the abort supersedes it
        raise AttemptAborted(self._reason)

    def _expire(self) -> None:
        self._timer = None
        recorded = self.request_abort(AbortReason.TIMEOUT)
        if recorded is AbortReason.TIMEOUT and not self.timeout_future.done():
            self.timeout_future.set_result(self._on_timeout())

    async def _watch(self, external_signal: asyncio.Event) -> None:
        await external_signal.wait()
        self.request_abort(AbortReason.CANCELLED)
