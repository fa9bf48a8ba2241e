"""Persistent view settings with schema validation and Qt change signals."""

from __future__ import annotations

import logging
import os
import sys
from copy import deepcopy
from pathlib import Path
from typing import Any, Sequence

from jsonschema import ValidationError
from PySide6.QtCore import QObject, Signal, Slot

from ..core.lazy_query_view import LazyQueryView
from ..errors import SettingsLoadError, SettingsValidationError
from ..utils.jsonio import read_json, write_json
from .schema import DEFAULT_SETTINGS, ViewOptions, merge_with_defaults

logger = logging.getLogger(__name__)

_APP_DIR = "lazyquery"
_FILE_NAME = "settings.json"
_MISSING = object()


def default_settings_path() -> Path:
    """Per-user ``settings.json`` location following platform conventions."""

    if os.name == "nt":
        root = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
    elif sys.platform == "darwin":
        root = str(Path.home() / "Library" / "Application Support")
    else:
        root = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(root) / _APP_DIR / _FILE_NAME


def _lookup(data: Any, parts: Sequence[str]) -> Any:
    for part in parts:
        if not isinstance(data, dict) or part not in data:
            return _MISSING
        data = data[part]
    return data


def _assign(data: dict[str, Any], parts: Sequence[str], value: Any) -> None:
    *parents, leaf = parts
    for part in parents:
        child = data.get(part)
        if not isinstance(child, dict):
            child = data[part] = {}
        data = child
    data[leaf] = value


class SettingsManager(QObject):
    """Owns the settings document and keeps ``settings.json`` in step with it."""

    settingsChanged = Signal(str, object)

    def __init__(self, path: Path | None = None) -> None:
        super().__init__()
        self._path = path
        self._data: dict[str, Any] = deepcopy(DEFAULT_SETTINGS)

    @property
    def path(self) -> Path:
        if self._path is None:
            self._path = default_settings_path()
        return self._path

    def load(self) -> None:
        """Read the settings file, filling gaps with defaults.

        A missing file is created with the defaults.  Unreadable JSON raises
        :class:`SettingsLoadError`; a document that fails the schema raises
        :class:`SettingsValidationError`.
        """

        path = self.path
        payload: Any = None
        if path.exists():
            try:
                payload = read_json(path)
            except (OSError, ValueError) as exc:
                raise SettingsLoadError(f"Cannot read {path}: {exc}") from exc
            if not isinstance(payload, dict):
                raise SettingsValidationError(f"{path} does not hold a JSON object")
        self._data = self._validated(payload)
        self._save()
        logger.debug("Loaded settings from %s", path)

    @Slot(str, result="QVariant")
    @Slot(str, "QVariant", result="QVariant")
    def get(self, key: str, default: Any | None = None) -> Any:
        """Value at the dotted *key*, or *default* when absent."""

        value = _lookup(self._data, key.split("."))
        return default if value is _MISSING else value

    @Slot(str, "QVariant")
    def set(self, key: str, value: Any) -> None:
        """Store *value* at the dotted *key*, persist it and emit ``settingsChanged``.

        The document is validated before anything is written, so a rejected
        value leaves both memory and disk unchanged.
        """

        if isinstance(value, Path):
            value = str(value)
        candidate = deepcopy(self._data)
        _assign(candidate, key.split("."), value)
        self._data = self._validated(candidate)
        self._save()
        self.settingsChanged.emit(key, value)

    def view_options(self) -> ViewOptions:
        return ViewOptions.from_mapping(self._data["view"])

    def apply_to(self, view: LazyQueryView) -> None:
        """Push the ``view`` section into *view* and its query definition."""

        options = self.view_options()
        definition = view.get_query_definition()
        definition.batch_size = options.batch_size
        definition.max_query_size = options.max_query_size
        view.max_cache_size = options.max_cache_size
        view.discard_on_refresh = options.discard_on_refresh

    @staticmethod
    def _validated(document: dict[str, Any] | None) -> dict[str, Any]:
        try:
            return merge_with_defaults(document)
        except ValidationError as exc:
            raise SettingsValidationError(exc.message) from exc

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_json(self.path, self._data)


__all__ = ["SettingsManager", "default_settings_path"]
