"""Custom exception hierarchy for lazyquery."""

from __future__ import annotations


class LazyQueryError(Exception):
    """Base class for all custom errors raised by lazyquery."""


# --- 3-layer hierarchy ---

class DomainError(LazyQueryError):
    """Base class for domain-level errors."""


class InfrastructureError(LazyQueryError):
    """Base class for infrastructure-level errors."""


class ApplicationError(LazyQueryError):
    """Base class for application-level errors."""


# --- Domain errors ---

class ItemIndexError(DomainError, IndexError):
    """Raised when an index falls outside ``[0, size())``."""


class ReadOnlyPropertyError(DomainError):
    """Raised when a caller writes to a read-only property cell."""


class SortStateError(DomainError, ValueError):
    """Raised when a sort request is malformed or names an unsortable property."""


class PendingChangesError(DomainError):
    """Raised when a refresh would silently drop buffered changes."""


# --- Application errors ---

class ConstructionError(ApplicationError):
    """Raised when a new item or query cannot be constructed."""


class UnsupportedOperationError(ApplicationError, NotImplementedError):
    """Raised for operations the lazy access pattern deliberately omits."""


# --- Infrastructure errors ---

class PersistenceError(InfrastructureError):
    """Raised when loading, saving or deleting rows in the backing store fails."""


class DatabaseError(PersistenceError):
    """Raised when a database operation fails."""


class ConnectionPoolExhausted(DatabaseError):
    """Raised when no connections are available in the pool."""


# --- Settings ---

class SettingsError(LazyQueryError):
    """Base class for settings related failures."""


class SettingsLoadError(SettingsError):
    """Raised when the settings file cannot be parsed or loaded."""


class SettingsValidationError(SettingsError):
    """Raised when settings data fails schema validation."""
