"""Publish/subscribe hub for container and error notifications.

Handlers are keyed by the exact event class.  Synchronous handlers run on
the publishing thread in subscription order; asynchronous ones are handed to
a small thread pool that is only started when first needed.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type


@dataclass(kw_only=True)
class Event:
    """Base event class."""
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""
    event_type: Type[Event]
    handler: Callable[[Any], Any]
    async_: bool = False
    active: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    _bus: Optional["EventBus"] = field(default=None, repr=False)

    def cancel(self) -> None:
        """Stop delivery and drop the handler from its bus."""
        self.active = False
        bus, self._bus = self._bus, None
        if bus is not None:
            bus.unsubscribe(self)


class EventBus:
    def __init__(self, logger: logging.Logger = None, max_workers: int = 2):
        self._logger = logger or logging.getLogger(__name__)
        self._subscriptions: Dict[Type[Event], List[Subscription]] = {}
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[Event], handler: Callable, async_: bool = False) -> Subscription:
        subscription = Subscription(event_type, handler, async_, _bus=self)
        with self._lock:
            self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        with self._lock:
            registered = self._subscriptions.get(subscription.event_type, [])
            if subscription in registered:
                registered.remove(subscription)
            if not registered:
                self._subscriptions.pop(subscription.event_type, None)

    def has_subscribers(self, event_type: Type[Event]) -> bool:
        with self._lock:
            return bool(self._subscriptions.get(event_type))

    def _active(self, event_type: Type[Event]) -> List[Subscription]:
        with self._lock:
            return [sub for sub in self._subscriptions.get(event_type, ()) if sub.active]

    def publish(self, event: Event) -> None:
        """Deliver *event*; handler failures are logged and do not propagate."""
        for sub in self._active(type(event)):
            if sub.async_:
                self._get_executor().submit(self._call, sub, event)
            else:
                self._call(sub, event)

    def publish_async(self, event: Event) -> List[Future]:
        """Run every handler of *event* on the pool and return the futures."""
        executor = self._get_executor()
        return [executor.submit(self._call, sub, event) for sub in self._active(type(event))]

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="lazyquery-events"
                )
            return self._executor

    def _call(self, subscription: Subscription, event: Event) -> None:
        try:
            subscription.handler(event)
        except Exception as exc:
            self._logger.error(
                "%s handler %r failed: %s",
                type(event).__name__,
                subscription.handler,
                exc,
                exc_info=True,
            )

    def shutdown(self) -> None:
        """Wait for queued asynchronous handlers and release the pool."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
