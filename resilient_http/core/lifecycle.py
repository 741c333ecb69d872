"""Lifecycle observer wiring phase timing and deadlines to transport signals."""

from resilient_http.core.phase_timer import Phase, PhaseTimer, PhaseTimings
from resilient_http.core.signals import SignalSubscriptions
from resilient_http.core.timeout_supervisor import TimeoutSupervisor
from resilient_http.ports.options import Deadline, ExecuteOptions
from resilient_http.ports.transport import Signal, SocketInfo, TransportAttempt

__all__ = ["LifecycleObserver"]


class LifecycleObserver:
    """Observes exactly one attempt.

    Drives a ``PhaseTimer`` and a ``TimeoutSupervisor`` from the attempt's
    lifecycle signals. DNS, TCP-connect and TLS checkpoints are only
    subscribed to when the connection is newly established, so they stay at
    0 on a reused connection.

    Usage:
        observer = LifecycleObserver(attempt, options)
        observer.attach()
        try:
            raw = await attempt.run()
        finally:
            observer.detach()
    """

    def __init__(self, attempt: TransportAttempt, options: ExecuteOptions) -> None:
        self._attempt = attempt
        self._timer = PhaseTimer()
        self._supervisor = TimeoutSupervisor(attempt, options.deadlines)
        self._attempt_subs = SignalSubscriptions(attempt.signals)
        self._socket_subs = SignalSubscriptions(attempt.signals)
        self._response_subs = SignalSubscriptions(attempt.signals)
        self._ended = False

    @property
    def timings(self) -> PhaseTimings:
        return self._timer.timings

    @property
    def supervisor(self) -> TimeoutSupervisor:
        return self._supervisor

    def attach(self) -> None:
        """Start timing, arm the attempt-wide deadlines and subscribe."""
        self._timer.start()
        self._supervisor.arm(Deadline.REQUEST)
        self._supervisor.arm(Deadline.TOTAL)

        self._attempt_subs.once(Signal.ERROR, self._on_end)
        self._attempt_subs.once(Signal.SOCKET_ACQUIRED, self._on_socket)
        self._attempt_subs.once(Signal.UPLOAD_FINISHED, self._on_upload)
        self._attempt_subs.once(Signal.RESPONSE_HEADERS_RECEIVED, self._on_headers)

    def detach(self) -> None:
        """Disarm all deadlines and unsubscribe from every signal. Idempotent."""
        self._supervisor.disarm_all()
        self._attempt_subs.remove_all()
        self._socket_subs.remove_all()
        self._response_subs.remove_all()

    def _on_socket(self, info: SocketInfo | None = None) -> None:
        info = info or SocketInfo()
        self._timer.end_phase(Phase.SOCKET)
        self._supervisor.arm(Deadline.IDLE_SOCKET)

        if info.reused:
            return
        self._socket_subs.once(Signal.DNS_RESOLVED, lambda *_: self._timer.end_phase(Phase.DNS))

        def on_connected(*_: object) -> None:
            self._timer.end_phase(Phase.TCP_CONNECT)
            if info.secure:
                self._socket_subs.once(
                    Signal.TLS_HANDSHAKE_COMPLETE, lambda *_: self._timer.end_phase(Phase.TLS)
                )

        self._socket_subs.once(Signal.TCP_CONNECTED, on_connected)

    def _on_upload(self, *_: object) -> None:
        self._supervisor.disarm(Deadline.REQUEST)
        self._timer.end_phase(Phase.UPLOAD)
        self._supervisor.arm(Deadline.RESPONSE)

    def _on_headers(self, *_: object) -> None:
        self._supervisor.disarm(Deadline.RESPONSE)
        self._timer.end_phase(Phase.RESPONSE)

        self._response_subs.once(Signal.RESPONSE_ERROR, self._on_end)
        self._response_subs.once(Signal.RESPONSE_BODY_ENDED, self._on_end)

    def _on_end(self, *_: object) -> None:
        if self._ended:
            return
        self._ended = True
        self._supervisor.disarm_all()
        self._timer.end_phase(Phase.DOWNLOAD)
        self.detach()
