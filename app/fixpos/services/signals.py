"""In-process integration signals.

Publishing is fire-and-forget with best-effort delivery: a subscriber that
raises is logged and reported back to the publisher, and never stops the
remaining subscribers. Consumers are expected to refresh on their own
schedule as well, since a signal can be missed.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from app.fixpos.core.logging import log_json
from app.fixpos.core.metrics import metrics

logger = logging.getLogger(__name__)

DATA_CHANGED = "data-changed"
SALE_COMPLETED = "sale-completed"
ORDER_PAYMENT_PROCESSED = "order-payment-processed"

Subscriber = Callable[[str, dict], Awaitable[None] | None]


@dataclass(frozen=True)
class SignalFailure:
    signal: str
    subscriber: str
    error: str


class SignalBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, signal: str, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers[signal].append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers[signal]:
                self._subscribers[signal].remove(subscriber)

        return unsubscribe

    def clear(self) -> None:
        self._subscribers.clear()

    async def publish(self, signal: str, payload: dict[str, Any] | None = None) -> list[SignalFailure]:
        payload = dict(payload or {})
        failures: list[SignalFailure] = []
        for subscriber in list(self._subscribers.get(signal, ())):
            name = getattr(subscriber, "__qualname__", repr(subscriber))
            try:
                result = subscriber(signal, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                failures.append(SignalFailure(signal=signal, subscriber=name, error=str(exc)))
                metrics.increment_signal_failure(signal)
                logger.exception("Integration signal subscriber failed", extra={"signal": signal, "subscriber": name})
        log_json(
            logger,
            {"event": "signal_published", "signal": signal, "failures": len(failures), **payload},
            level=logging.DEBUG,
        )
        return failures


bus = SignalBus()
