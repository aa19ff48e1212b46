from __future__ import annotations

import threading
from typing import Dict


class MetricsStore:
    """Thread-safe in-memory metrics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {
            "uploads": 0,
            "bytes_uploaded": 0,
            "quota_rejections": 0,
            "downloads": 0,
            "previews": 0,
            "soft_deletes": 0,
            "purges": 0,
        }

    def _add(self, name: str, amount: int = 1) -> None:
        if amount <= 0:
            return
        with self._lock:
            self._counters[name] += amount

    def record_upload(self, count: int, size_bytes: int) -> None:
        self._add("uploads", count)
        self._add("bytes_uploaded", size_bytes)

    def record_quota_rejection(self) -> None:
        self._add("quota_rejections")

    def record_download(self) -> None:
        self._add("downloads")

    def record_preview(self) -> None:
        self._add("previews")

    def record_soft_delete(self) -> None:
        self._add("soft_deletes")

    def record_purge(self) -> None:
        self._add("purges")

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)


metrics = MetricsStore()
