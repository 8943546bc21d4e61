"""
Submission - event emitter returned by ``send()`` on a binding.

Events emitted by a submission:
- transactionHash(tx_hash):               the node accepted the transaction
- receipt(receipt):                       the transaction was mined
- confirmation(confirmation_number, receipt): the configured depth was reached
- error(exc):                             submission or confirmation failed
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

EVENTS = ("transactionHash", "receipt", "confirmation", "error")

Listener = Callable[..., Any]


class Submission:
    """Minimal event emitter with chainable ``on``."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {name: [] for name in EVENTS}

    def _bucket(self, event: str) -> list[Listener]:
        try:
            return self._listeners[event]
        except KeyError:
            raise ValueError(f"Unknown submission event: {event}") from None

    def on(self, event: str, listener: Listener) -> "Submission":
        self._bucket(event).append(listener)
        return self

    def once(self, event: str, listener: Listener) -> "Submission":
        def wrapper(*args: Any) -> Any:
            self.off(event, wrapper)
            return listener(*args)

        return self.on(event, wrapper)

    def off(self, event: str, listener: Listener) -> "Submission":
        bucket = self._bucket(event)
        if listener in bucket:
            bucket.remove(listener)
        return self

    def remove_all_listeners(self, event: Optional[str] = None) -> "Submission":
        events = [event] if event else list(EVENTS)
        for name in events:
            self._bucket(name).clear()
        return self

    def listener_count(self, event: str) -> int:
        return len(self._bucket(event))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener registered for ``event``.

        A listener that raises is logged and skipped so the remaining
        listeners still run.

        Returns:
            True if at least one listener was registered
        """
        listeners = list(self._bucket(event))
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %r raised", event)
        return bool(listeners)
