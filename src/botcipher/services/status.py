"""Transaction status channel.

A single notification slot. Every write replaces the previous status.
Success and error notifications hide themselves after a fixed delay; each
write bumps a generation counter so a delayed clear scheduled for an older
status never hides a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from botcipher.core.settings import settings
from botcipher.schemas.status import StatusKind, TransactionStatus

logger = logging.getLogger(__name__)

StatusListener = Callable[[TransactionStatus], None]

HIDDEN = TransactionStatus()


class TransactionStatusChannel:
    """Last-writer-wins status slot with generation-guarded auto-clear."""

    def __init__(
        self,
        *,
        success_clear_seconds: float | None = None,
        error_clear_seconds: float | None = None,
    ) -> None:
        self._delays = {
            StatusKind.SUCCESS: (
                settings.status_success_clear_seconds
                if success_clear_seconds is None
                else success_clear_seconds
            ),
            StatusKind.ERROR: (
                settings.status_error_clear_seconds
                if error_clear_seconds is None
                else error_clear_seconds
            ),
        }
        self._current = HIDDEN
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[StatusListener] = []

    @property
    def current(self) -> TransactionStatus:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener`` for every change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set(self, status: StatusKind, message: str) -> int:
        """Replace the slot and return the generation stamped on it.

        Must be called from a running event loop when ``status`` is success
        or error, since those schedule their own clear.
        """
        self._generation += 1
        generation = self._generation
        self._cancel_timer()
        self._publish(TransactionStatus(visible=True, status=status, message=message))

        delay = self._delays.get(status)
        if delay is not None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(delay, self._expire, generation)
        return generation

    def pending(self, message: str) -> int:
        return self.set(StatusKind.PENDING, message)

    def success(self, message: str) -> int:
        return self.set(StatusKind.SUCCESS, message)

    def error(self, message: str) -> int:
        return self.set(StatusKind.ERROR, message)

    def clear(self) -> None:
        """Hide the slot immediately."""
        self._generation += 1
        self._cancel_timer()
        self._publish(HIDDEN)

    def _expire(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Skipping stale status clear for generation %d", generation)
            return
        self._timer = None
        self._publish(HIDDEN)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _publish(self, status: TransactionStatus) -> None:
        self._current = status
        logger.debug("Transaction status: %s %r", status.status.value, status.message)
        for listener in list(self._listeners):
            listener(status)
