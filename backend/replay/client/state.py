from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum


class PaymentStatus(str, Enum):
    IDLE = "idle"
    SIGNING = "signing"
    CONFIRMING = "confirming"
    SUCCESS = "success"
    ERROR = "error"


class InvalidTransitionError(RuntimeError):
    pass


_ALLOWED = {
    PaymentStatus.IDLE: {PaymentStatus.SIGNING},
    PaymentStatus.SIGNING: {PaymentStatus.CONFIRMING, PaymentStatus.ERROR},
    PaymentStatus.CONFIRMING: {PaymentStatus.SUCCESS, PaymentStatus.ERROR},
    PaymentStatus.SUCCESS: {PaymentStatus.IDLE},
    PaymentStatus.ERROR: {PaymentStatus.IDLE},
}

Listener = Callable[[PaymentStatus, "str | None"], None]


class PaymentStateMachine:
    """Tracks the UI-facing status of one paid action at a time.

    Terminal states (success, error) fall back to idle after ``reset_delay``
    seconds on the running event loop.
    """

    def __init__(self, reset_delay: float = 3.0) -> None:
        self.reset_delay = reset_delay
        self._status = PaymentStatus.IDLE
        self._error_reason: str | None = None
        self._listeners: list[Listener] = []
        self._reset_handle: asyncio.TimerHandle | None = None

    @property
    def status(self) -> PaymentStatus:
        return self._status

    @property
    def error_reason(self) -> str | None:
        return self._error_reason

    @property
    def busy(self) -> bool:
        return self._status in (PaymentStatus.SIGNING, PaymentStatus.CONFIRMING)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, target: PaymentStatus, reason: str | None = None) -> None:
        if target not in _ALLOWED[self._status]:
            raise InvalidTransitionError(f"cannot move from {self._status.value} to {target.value}")
        self._status = target
        self._error_reason = reason if target is PaymentStatus.ERROR else None
        for listener in list(self._listeners):
            listener(target, self._error_reason)

    def _schedule_reset(self) -> None:
        loop = asyncio.get_running_loop()
        self._reset_handle = loop.call_later(self.reset_delay, self._reset)

    def _reset(self) -> None:
        self._reset_handle = None
        if self._status in (PaymentStatus.SUCCESS, PaymentStatus.ERROR):
            self._transition(PaymentStatus.IDLE)

    def start(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
            if self._status in (PaymentStatus.SUCCESS, PaymentStatus.ERROR):
                self._transition(PaymentStatus.IDLE)
        self._transition(PaymentStatus.SIGNING)

    def signed(self) -> None:
        self._transition(PaymentStatus.CONFIRMING)

    def succeed(self) -> None:
        self._transition(PaymentStatus.SUCCESS)
        self._schedule_reset()

    def fail(self, reason: str) -> None:
        self._transition(PaymentStatus.ERROR, reason)
        self._schedule_reset()
