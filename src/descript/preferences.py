from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from .log import get_logger

logger = get_logger(__name__)

Observer = Callable[[str], None]


class PreferenceBranch:
    """Prefixed key/value preferences, optionally backed by a YAML file."""

    def __init__(self, prefix: str, path: Optional[Path] = None) -> None:
        self.prefix = prefix
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._values: dict[str, Any] = {}
        self._observers: dict[str, list[Observer]] = {}
        if self.path:
            self._load()

    def _full_name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _read_file(self) -> dict[str, Any]:
        if not self.path or not self.path.exists():
            return {}
        data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Ignoring non-mapping preference file: %s", self.path)
            return {}
        return data

    def _load(self) -> None:
        data = self._read_file()
        for name, value in data.items():
            if isinstance(name, str) and name.startswith(self.prefix):
                self._values[name[len(self.prefix):]] = value

    def _save(self) -> None:
        if not self.path:
            return
        data = {
            k: v
            for k, v in self._read_file().items()
            if not str(k).startswith(self.prefix)
        }
        for key, value in self._values.items():
            data[self._full_name(key)] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump(data, sort_keys=True), encoding="utf-8")

    def has(self, key: str) -> bool:
        return key in self._values

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            changed = self._values.get(key) != value or key not in self._values
            self._values[key] = value
            self._save()
            observers = list(self._observers.get(key, ()))
        if not changed:
            return
        for observer in observers:
            observer(key)

    def set_default(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._values:
                return
            self._values[key] = value
            self._save()

    def get_char_pref(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise KeyError(self._full_name(key))
        return str(value)

    def set_char_pref(self, key: str, value: str) -> None:
        self.set(key, str(value))

    def get_bool_pref(self, key: str, default: Optional[bool] = None) -> bool:
        value = self.get(key, default)
        if value is None:
            raise KeyError(self._full_name(key))
        return bool(value)

    def set_bool_pref(self, key: str, value: bool) -> None:
        self.set(key, bool(value))

    def add_observer(self, key: str, observer: Observer) -> None:
        with self._lock:
            self._observers.setdefault(key, []).append(observer)

    def remove_observer(self, key: str, observer: Observer) -> None:
        with self._lock:
            observers = self._observers.get(key, [])
            if observer in observers:
                observers.remove(observer)
