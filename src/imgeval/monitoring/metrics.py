from __future__ import annotations

import logging
import threading
from dataclasses import dataclass


@dataclass
class IngestSnapshot:
    lines_read: int
    entries_accepted: int
    lines_skipped: int
    unmatched_references: int
    runs_imported: int
    corrupted_records: int


class IngestMetrics:
    _COUNTERS = (
        ("lines_read", "imgeval_lines_read_total", "Non-blank JSONL lines read"),
        ("entries_accepted", "imgeval_entries_accepted_total", "Dataset entries accepted"),
        ("lines_skipped", "imgeval_lines_skipped_total", "Lines skipped with an issue"),
        ("unmatched_references", "imgeval_unmatched_references_total", "Image references with no matching file"),
        ("runs_imported", "imgeval_runs_imported_total", "Evaluation runs imported"),
        ("corrupted_records", "imgeval_corrupted_records_total", "Persisted records skipped as unreadable"),
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values = {name: 0 for name, _, _ in self._COUNTERS}
        self._prometheus_started = False
        self._prometheus_counters: dict | None = None
        self._logger = logging.getLogger("imgeval.metrics")

    def enable_prometheus(self, host: str, port: int) -> bool:
        try:
            from prometheus_client import Counter, start_http_server
        except ImportError:
            self._logger.warning("prometheus_client not installed, metrics stay in-process")
            return False

        if self._prometheus_started:
            return True

        start_http_server(port, addr=host)
        self._prometheus_started = True
        self._prometheus_counters = {
            name: Counter(metric, doc) for name, metric, doc in self._COUNTERS
        }
        return True

    def add(self, name: str, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._values[name] += count
            if self._prometheus_counters:
                self._prometheus_counters[name].inc(count)

    def snapshot(self) -> IngestSnapshot:
        with self._lock:
            return IngestSnapshot(**self._values)
