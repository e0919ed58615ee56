from abc import ABC, abstractmethod
import json
import threading
from pathlib import Path
from typing import Any, Iterable, List

# Reserved key under which failed-request diagnostics are written
DEBUG_KEY = "#debug"


class DatasetSink(ABC):
    """
    Abstract append-only output for accepted records and debug entries.
    Each pushed item is individually addressable; order of pushes is preserved.
    """

    @abstractmethod
    def push(self, item: Any) -> None:
        pass

    def push_many(self, items: Iterable[Any]) -> None:
        for item in items:
            self.push(item)

    def close(self) -> None:
        pass


class MemoryDatasetSink(DatasetSink):

    def __init__(self):
        self.items: List[Any] = []

    def push(self, item: Any) -> None:
        self.items.append(item)

    @property
    def records(self) -> List[Any]:
        return [i for i in self.items if not (isinstance(i, dict) and DEBUG_KEY in i)]

    @property
    def debug_records(self) -> List[Any]:
        return [i[DEBUG_KEY] for i in self.items if isinstance(i, dict) and DEBUG_KEY in i]


class JsonlDatasetSink(DatasetSink):
    """One JSON document per line; flushed per push so a crash loses at most one item."""

    def __init__(self, path):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._fh = open(self._path, "a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def push(self, item: Any) -> None:
        line = json.dumps(item, ensure_ascii=False)
        with self._lock:
            self._fh.write(line + "\n")
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.close()
