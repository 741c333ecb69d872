"""Per-attempt one-shot signal bus."""

from collections import defaultdict
from collections.abc import Callable
from typing import Any

from resilient_http.ports.transport import Signal, SignalBus

__all__ = ["Listener", "SignalEmitter", "SignalSubscriptions"]

Listener = Callable[..., None]


class SignalEmitter:
    """One-shot notifications for a single attempt.

    Each signal is delivered at most once; later emits of the same signal are
    ignored. Listeners run synchronously, most recently registered first.
    """

    def __init__(self) -> None:
        self._listeners: defaultdict[Signal, list[Listener]] = defaultdict(list)
        self._fired: set[Signal] = set()

    def once(self, signal: Signal, listener: Listener) -> None:
        """Register ``listener`` for the next (and only) ``signal``."""
        self._listeners[signal].insert(0, listener)

    def remove(self, signal: Signal, listener: Listener) -> None:
        """Remove ``listener`` if it is still registered."""
        listeners = self._listeners.get(signal)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def has_fired(self, signal: Signal) -> bool:
        return signal in self._fired

    def listener_count(self, signal: Signal) -> int:
        return len(self._listeners.get(signal, ()))

    def emit(self, signal: Signal, *args: Any) -> bool:
        """Deliver ``signal`` to its listeners.

        Returns:
            False if the signal had already fired, True otherwise.
        """
        if signal in self._fired:
            return False
        self._fired.add(signal)
        listeners = self._listeners.pop(signal, [])
        for listener in listeners:
            listener(*args)
        return True


class SignalSubscriptions:
    """Tracks listeners registered on an emitter so they can all be removed."""

    def __init__(self, emitter: SignalBus) -> None:
        self._emitter = emitter
        self._registered: list[tuple[Signal, Listener]] = []

    def once(self, signal: Signal, listener: Listener) -> None:
        self._emitter.once(signal, listener)
        self._registered.append((signal, listener))

    def remove_all(self) -> None:
        for signal, listener in self._registered:
            self._emitter.remove(signal, listener)
        self._registered.clear()
