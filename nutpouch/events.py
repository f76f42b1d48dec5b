"""Event bus notifying listeners about wallet changes."""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal, get_args

logger = logging.getLogger(__name__)


WalletEventType = Literal["balance-change", "proofs-change", "transaction", "error"]

WALLET_EVENTS: tuple[str, ...] = get_args(WalletEventType)

Handler = Callable[[Any], None]


class EventBus:
    """Synchronous observer registry with one channel per event kind.

    Payloads by event:
        balance-change: int
        proofs-change: list[Proof]
        transaction: TransactionRecord
        error: Exception

    A handler that raises is logged and skipped; the remaining handlers
    still receive the event.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {name: [] for name in WALLET_EVENTS}

    def on(self, event: WalletEventType, handler: Handler) -> Callable[[], None]:
        """Subscribe ``handler``; returns a callable that unsubscribes it."""
        handlers = self._channel(event)
        if handler not in handlers:
            handlers.append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: WalletEventType, handler: Handler) -> None:
        handlers = self._channel(event)
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: WalletEventType, payload: Any) -> None:
        for handler in list(self._channel(event)):
            try:
                handler(payload)
            except Exception:
                logger.exception("Error in %s handler %r", event, handler)

    def listener_count(self, event: WalletEventType) -> int:
        return len(self._channel(event))

    def _channel(self, event: str) -> list[Handler]:
        try:
            return self._handlers[event]
        except KeyError:
            raise ValueError(
                f"Unknown wallet event {event!r}. Expected one of: {', '.join(WALLET_EVENTS)}"
            ) from None
