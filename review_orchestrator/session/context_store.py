"""Per-session conversation context."""

import threading
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional


def result_key(tool_name: str) -> str:
    """Context key under which the latest successful result of a tool is kept."""
    return f"last_{tool_name}_result"


class ContextStore:
    """Ordered key -> value map owned by one Session.

    Insertion order is preserved for deterministic prompt rendering.
    Writes come from the owning session only; reads (snapshots) may happen
    from any task, so every access holds the lock.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = dict(initial or {})

    def add(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def update(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            self._data.update(values)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def record_result(self, tool_name: str, content: Any) -> None:
        self.add(result_key(tool_name), content)

    def snapshot(self) -> Mapping[str, Any]:
        """Immutable copy of the current context."""
        with self._lock:
            return MappingProxyType(dict(self._data))

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
