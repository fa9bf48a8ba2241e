"""Default configuration values for lazyquery."""

from __future__ import annotations

from typing import Final

# Number of rows requested from a query in a single ``load_items`` call when
# the caller does not specify a batch size on the definition.
DEFAULT_BATCH_SIZE: Final[int] = 50

# Maximum number of queried rows kept in a view's cache before the least
# recently used ones are evicted.  Rows pinned by a pending modification or
# removal are never evicted, so the cache may temporarily exceed this bound.
DEFAULT_MAX_CACHE_SIZE: Final[int] = 1000

# ``max_query_size`` value meaning "no cap on the number of queried rows".
UNLIMITED_QUERY_SIZE: Final[int] = -1

# ---------------------------------------------------------------------------
# Reserved property identifiers
# ---------------------------------------------------------------------------

# When a definition declares this property the view keeps it in sync with the
# buffered lifecycle state of the row (see ``QueryItemStatus``).
PROPERTY_ID_ITEM_STATUS: Final[str] = "PROPERTY_ID_ITEM_STATUS"

# Instrumentation properties filled on every freshly loaded row when the
# definition declares them.
DEBUG_PROPERTY_ID_QUERY_INDEX: Final[str] = "DEBUG_PROPERTY_ID_QUERY_INDEX"
DEBUG_PROPERTY_ID_BATCH_INDEX: Final[str] = "DEBUG_PROPERTY_ID_BATCH_INDEX"
DEBUG_PROPERTY_ID_BATCH_QUERY_TIME: Final[str] = "DEBUG_PROPERTY_ID_BATCH_QUERY_TIME"

DEBUG_PROPERTY_IDS: Final[tuple[str, ...]] = (
    DEBUG_PROPERTY_ID_QUERY_INDEX,
    DEBUG_PROPERTY_ID_BATCH_INDEX,
    DEBUG_PROPERTY_ID_BATCH_QUERY_TIME,
)

SETTINGS_SCHEMA_ID: Final[str] = "lazyquery/settings@1"
