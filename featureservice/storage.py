from __future__ import annotations

import json
import queue
import threading
from abc import ABC, abstractmethod
from typing import Optional

from .models import FeaturePage


class StorageBase(ABC):
    """Abstract base class for sinks that receive fetched pages.

    Subclasses must implement write() and close(). Pages are handed over
    once and not retained."""

    @abstractmethod
    def write(self, page: FeaturePage) -> None:
        """Persist the features of a single page."""

    @abstractmethod
    def close(self) -> None:
        """Flush pending writes and release resources."""


class JsonlStorage(StorageBase):
    """Writes one feature per line (.jsonl) using a background writer thread."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._queue: queue.Queue[Optional[FeaturePage]] = queue.Queue()
        self._count = 0
        self._thread = threading.Thread(target=self._writer, daemon=True)
        self._thread.start()

    def write(self, page: FeaturePage) -> None:
        """Enqueue a page for background writing."""
        self._queue.put(page)

    def close(self) -> None:
        """Signal the writer thread to flush and stop."""
        self._queue.put(None)
        self._thread.join()

    @property
    def count(self) -> int:
        """Number of features written so far."""
        return self._count

    def _writer(self) -> None:
        with open(self._path, "w", encoding="utf-8") as f:
            while True:
                page = self._queue.get()
                if page is None:
                    break
                for feature in page.features:
                    f.write(json.dumps(feature, ensure_ascii=False) + "\n")
                    self._count += 1
                f.flush()
