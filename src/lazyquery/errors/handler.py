import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..events.bus import Event, EventBus

UiCallback = Callable[[str, "ErrorSeverity"], None]


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def notifies_user(self) -> bool:
        return self in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)


@dataclass(kw_only=True)
class ErrorOccurredEvent(Event):
    error: Exception
    severity: ErrorSeverity
    context: Dict[str, Any] = field(default_factory=dict)


class ErrorHandler:
    """Report errors raised at boundaries that must not propagate (Qt slots).

    Every report is logged at the level matching its severity and published
    as an :class:`ErrorOccurredEvent`.  Registered UI callbacks only hear
    about ``ERROR`` and ``CRITICAL`` reports.
    """

    def __init__(self, logger: logging.Logger, event_bus: EventBus):
        self._logger = logger
        self._events = event_bus
        self._ui_callbacks: List[UiCallback] = []

    def register_ui_callback(self, callback: UiCallback) -> None:
        if callback not in self._ui_callbacks:
            self._ui_callbacks.append(callback)

    def unregister_ui_callback(self, callback: UiCallback) -> None:
        if callback in self._ui_callbacks:
            self._ui_callbacks.remove(callback)

    def handle(
        self,
        error: Exception,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = dict(context or {})
        log_method = getattr(self._logger, severity.value, self._logger.error)
        # ``extra`` keys must not clash with LogRecord attributes
        log_method("%s: %s", type(error).__name__, error, extra={"lazyquery_context": context})

        self._events.publish(ErrorOccurredEvent(error=error, severity=severity, context=context))

        if severity.notifies_user:
            for callback in list(self._ui_callbacks):
                callback(str(error), severity)

    @contextmanager
    def suppress(self, severity: ErrorSeverity = ErrorSeverity.ERROR, **context: Any) -> Iterator[None]:
        """Report and swallow any exception raised in the ``with`` block."""
        try:
            yield
        except Exception as exc:
            self.handle(exc, severity, context)
