import logging
from unittest.mock import Mock

from lazyquery.errors import (
    ConnectionPoolExhausted,
    DatabaseError,
    DomainError,
    InfrastructureError,
    ItemIndexError,
    LazyQueryError,
    PersistenceError,
    SortStateError,
    UnsupportedOperationError,
)
from lazyquery.errors.handler import ErrorHandler, ErrorOccurredEvent, ErrorSeverity
from lazyquery.events.bus import EventBus


def test_handle_error_logs_and_publishes():
    logger = Mock(spec=logging.Logger)
    event_bus = Mock(spec=EventBus)
    handler = ErrorHandler(logger, event_bus)

    error = DatabaseError("disk full")
    handler.handle(error, ErrorSeverity.ERROR, {"operation": "data"})

    logger.error.assert_called_once()
    assert logger.error.call_args.kwargs["extra"] == {"lazyquery_context": {"operation": "data"}}
    event = event_bus.publish.call_args[0][0]
    assert isinstance(event, ErrorOccurredEvent)
    assert event.error is error
    assert event.severity == ErrorSeverity.ERROR
    assert event.context == {"operation": "data"}


def test_severity_selects_log_method():
    logger = Mock(spec=logging.Logger)
    handler = ErrorHandler(logger, Mock(spec=EventBus))
    handler.handle(ValueError("meh"), ErrorSeverity.WARNING)
    logger.warning.assert_called_once()
    logger.error.assert_not_called()


def test_ui_callback_only_for_serious_errors():
    handler = ErrorHandler(Mock(spec=logging.Logger), Mock(spec=EventBus))
    callback = Mock()
    handler.register_ui_callback(callback)

    handler.handle(Exception("info"), ErrorSeverity.INFO)
    callback.assert_not_called()

    handler.handle(RuntimeError("ui error"), ErrorSeverity.CRITICAL)
    callback.assert_called_with("ui error", ErrorSeverity.CRITICAL)


def test_error_hierarchy():
    assert issubclass(ItemIndexError, DomainError)
    assert issubclass(ItemIndexError, IndexError)
    assert issubclass(SortStateError, ValueError)
    assert issubclass(UnsupportedOperationError, NotImplementedError)
    assert issubclass(ConnectionPoolExhausted, DatabaseError)
    assert issubclass(DatabaseError, PersistenceError)
    assert issubclass(PersistenceError, InfrastructureError)
    assert issubclass(InfrastructureError, LazyQueryError)


def test_suppress_reports_and_swallows():
    logger = Mock(spec=logging.Logger)
    event_bus = Mock(spec=EventBus)
    handler = ErrorHandler(logger, event_bus)

    with handler.suppress(ErrorSeverity.WARNING, operation="flags", row=3):
        raise ItemIndexError("row 3 is gone")

    logger.warning.assert_called_once()
    event = event_bus.publish.call_args[0][0]
    assert event.context == {"operation": "flags", "row": 3}
    assert isinstance(event.error, ItemIndexError)


def test_suppress_is_silent_without_errors():
    event_bus = Mock(spec=EventBus)
    handler = ErrorHandler(Mock(spec=logging.Logger), event_bus)
    with handler.suppress(operation="noop"):
        pass
    event_bus.publish.assert_not_called()


def test_unregistered_callback_is_not_called():
    handler = ErrorHandler(Mock(spec=logging.Logger), Mock(spec=EventBus))
    first, second = Mock(), Mock()
    handler.register_ui_callback(first)
    handler.register_ui_callback(second)
    handler.unregister_ui_callback(first)

    handler.handle(RuntimeError("lost"), ErrorSeverity.ERROR)

    first.assert_not_called()
    second.assert_called_once_with("lost", ErrorSeverity.ERROR)
