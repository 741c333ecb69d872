"""Reusable base for abortable transport attempts."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable

from resilient_http.core.signals import SignalEmitter
from resilient_http.ports.transport import RawResponse, Signal

__all__ = ["AbortableAttempt"]


class AbortableAttempt(ABC):
    """Runs one transport operation in its own task so it can be aborted.

    Subclasses implement ``_perform()`` and emit lifecycle signals on
    ``self.signals`` while it runs. Traffic on the connection should be
    reported through ``touch()`` so the idle timer is re-armed.
    """

    def __init__(self) -> None:
        self.signals = SignalEmitter()
        self._task: asyncio.Task[RawResponse] | None = None
        self._abort_error: BaseException | None = None
        self._idle_timeout_ms: float | None = None
        self._idle_callback: Callable[[], None] | None = None
        self._idle_handle: asyncio.TimerHandle | None = None

    @abstractmethod
    async def _perform(self) -> RawResponse:
        """Execute the operation and return the buffered response."""

    @property
    def aborted(self) -> bool:
        return self._abort_error is not None

    async def run(self) -> RawResponse:
        """Run the operation to completion.

        Returns:
            The buffered response.

        Raises:
            RuntimeError: If the attempt was already started.
            BaseException: The error passed to ``abort()``, or the failure
                raised by ``_perform()``.
        """
        if self._task is not None:
            raise RuntimeError("Attempt already started; create a fresh attempt per retry")
        if self._abort_error is not None:
            raise self._abort_error

        self._task = asyncio.get_running_loop().create_task(self._perform())
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._abort_error is None:
                raise
            raise self._abort_error from None
        finally:
            self.clear_idle_timeout()

    def abort(self, error: BaseException) -> None:
        """Terminate the in-flight operation; ``run()`` raises ``error``."""
        if self._abort_error is not None:
            return
        if self._task is not None and self._task.done():
            return
        self._abort_error = error
        self.clear_idle_timeout()
        self.signals.emit(Signal.ERROR, error)
        if self._task is not None:
            self._task.cancel()

    def set_idle_timeout(self, timeout_ms: float, callback: Callable[[], None]) -> None:
        self._idle_timeout_ms = timeout_ms
        self._idle_callback = callback
        self.touch()

    def clear_idle_timeout(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
        self._idle_handle = None
        self._idle_callback = None

    def touch(self) -> None:
        """Report connection activity (re-arms the idle timer)."""
        if self._idle_callback is None or self._idle_timeout_ms is None:
            return
        if self._idle_handle is not None:
            self._idle_handle.cancel()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self._idle_timeout_ms / 1000, self._idle_callback)
