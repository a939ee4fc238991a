"""Run persistence with summary and detail kept apart.

Filesystem layout under the store root::

    <run_id>.json                  run summary
    <run_id>/items.json            per-item detail (optional)
    <run_id>/folder_stats.json     folder rollup (optional)

Operations on different run ids may run concurrently. Callers serialize writes to
the same run id; there is no per-id locking here.
"""
from __future__ import annotations

import json
import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from imgeval.config.models import StoreConfig
from imgeval.errors import RunNotFoundError
from imgeval.monitoring.metrics import IngestMetrics
from imgeval.results.importer import import_results_jsonl
from imgeval.results.models import EvaluationItemResult, EvaluationResult, FolderStats
from imgeval.utils.config_io import read_json, write_json

ITEMS_DOCUMENT = "items"
FOLDER_STATS_DOCUMENT = "folder_stats"


class PersistencePort(ABC):
    @abstractmethod
    def list_ids(self) -> list[str]:
        """Ids of every persisted run summary."""

    @abstractmethod
    def read_summary(self, run_id: str) -> dict[str, Any] | None:
        """Summary payload, or None if absent. Raises ValueError when unreadable."""

    @abstractmethod
    def write_summary(self, run_id: str, payload: dict[str, Any]) -> None:
        """Persist the summary payload."""

    @abstractmethod
    def read_detail(self, run_id: str, document: str) -> Any | None:
        """Detail document payload, or None if absent."""

    @abstractmethod
    def write_detail(self, run_id: str, document: str, payload: Any) -> None:
        """Persist one detail document."""

    @abstractmethod
    def delete(self, run_id: str) -> bool:
        """Remove summary and detail. Return False when nothing existed.

        Raises ``RunNotFoundError`` for ids that are not a single path component.
        """


class LocalFilesystemPersistence(PersistencePort):
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _run_dir(self, run_id: str) -> Path:
        """Detail directory for ``run_id``; ids must name a single entry directly under the root."""
        if not run_id or run_id in {".", ".."} or any(sep in run_id for sep in ("/", "\\", os.sep)):
            raise RunNotFoundError(f"Invalid run id: {run_id!r}")
        path = self._root / run_id
        if path.parent != self._root:
            raise RunNotFoundError(f"Invalid run id: {run_id!r}")
        return path

    def _summary_path(self, run_id: str) -> Path:
        return self._run_dir(run_id).with_name(f"{run_id}.json")

    def _detail_path(self, run_id: str, document: str) -> Path:
        return self._run_dir(run_id) / f"{document}.json"

    @staticmethod
    def _read(path: Path) -> Any | None:
        if not path.is_file():
            return None
        try:
            return read_json(path)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"Unreadable record {path}: {exc}") from exc

    def list_ids(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(path.stem for path in self._root.glob("*.json") if path.is_file())

    def read_summary(self, run_id: str) -> dict[str, Any] | None:
        return self._read(self._summary_path(run_id))

    def write_summary(self, run_id: str, payload: dict[str, Any]) -> None:
        write_json(self._summary_path(run_id), payload)

    def read_detail(self, run_id: str, document: str) -> Any | None:
        return self._read(self._detail_path(run_id, document))

    def write_detail(self, run_id: str, document: str, payload: Any) -> None:
        write_json(self._detail_path(run_id, document), payload)

    def delete(self, run_id: str) -> bool:
        summary = self._summary_path(run_id)
        detail_dir = self._run_dir(run_id)
        existed = summary.exists() or detail_dir.exists()
        if summary.exists():
            summary.unlink()
        if detail_dir.is_dir():
            shutil.rmtree(detail_dir)
        return existed


class ResultsStore:
    def __init__(
        self,
        persistence: PersistencePort,
        synthesize_default_criteria: bool = True,
        default_criteria: dict[str, float] | None = None,
        metrics: IngestMetrics | None = None,
    ) -> None:
        self._persistence = persistence
        self._synthesize = synthesize_default_criteria
        self._default_criteria = default_criteria
        self._metrics = metrics
        self._logger = logging.getLogger("imgeval.store")

    @classmethod
    def from_config(cls, config: StoreConfig, metrics: IngestMetrics | None = None) -> "ResultsStore":
        return cls(
            LocalFilesystemPersistence(config.root),
            synthesize_default_criteria=config.synthesize_default_criteria,
            default_criteria=dict(config.default_criteria),
            metrics=metrics,
        )

    @property
    def persistence(self) -> PersistencePort:
        return self._persistence

    def save(self, run: EvaluationResult) -> None:
        self._persistence.write_summary(run.id, run.summary_dict())
        if run.item_results is not None:
            self._persistence.write_detail(
                run.id, ITEMS_DOCUMENT, [item.to_dict() for item in run.item_results]
            )
        if run.folder_statistics is not None:
            self._persistence.write_detail(
                run.id,
                FOLDER_STATS_DOCUMENT,
                {key: stats.to_dict() for key, stats in run.folder_statistics.items()},
            )
        self._logger.info(
            "run saved run_id=%s items=%s",
            run.id,
            len(run.item_results) if run.item_results is not None else "none",
        )

    def load_summary(self, run_id: str) -> EvaluationResult:
        try:
            payload = self._persistence.read_summary(run_id)
            if payload is None:
                raise RunNotFoundError(f"Evaluation run not found: {run_id}")
            return EvaluationResult.from_summary_dict(payload)
        except (ValueError, KeyError, TypeError) as exc:
            raise RunNotFoundError(f"Evaluation run {run_id} is unreadable: {exc}") from exc

    def load_detail(self, run_id: str) -> EvaluationResult:
        """Summary plus whichever detail documents exist; missing ones stay ``None``."""
        run = self.load_summary(run_id)
        try:
            items = self._persistence.read_detail(run_id, ITEMS_DOCUMENT)
            if items is not None:
                run.item_results = [EvaluationItemResult.from_dict(item) for item in items]
        except (ValueError, KeyError, TypeError) as exc:
            self._logger.warning("item detail unreadable run_id=%s reason=%s", run_id, exc)
            self._count_corrupted()

        try:
            folders = self._persistence.read_detail(run_id, FOLDER_STATS_DOCUMENT)
            if folders is not None:
                run.folder_statistics = {
                    key: FolderStats.from_dict(value) for key, value in folders.items()
                }
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            self._logger.warning("folder detail unreadable run_id=%s reason=%s", run_id, exc)
            self._count_corrupted()
        return run

    def _count_corrupted(self) -> None:
        if self._metrics is not None:
            self._metrics.add("corrupted_records")

    def list_runs(self) -> list[EvaluationResult]:
        """Every readable run summary, newest first. Unreadable records are skipped."""
        runs: list[EvaluationResult] = []
        for run_id in self._persistence.list_ids():
            try:
                runs.append(self.load_summary(run_id))
            except RunNotFoundError as exc:
                self._logger.warning("skipping corrupted run record run_id=%s reason=%s", run_id, exc)
                self._count_corrupted()
        runs.sort(key=lambda run: run.timestamp.timestamp(), reverse=True)
        return runs

    def search_runs(self, query: str) -> list[EvaluationResult]:
        needle = query.strip().lower()
        runs = self.list_runs()
        if not needle:
            return runs
        return [
            run
            for run in runs
            if needle in run.name.lower()
            or needle in run.model_name.lower()
            or needle in run.description.lower()
        ]

    def delete(self, run_id: str) -> None:
        if not self._persistence.delete(run_id):
            raise RunNotFoundError(f"Evaluation run not found: {run_id}")
        self._logger.info("run deleted run_id=%s", run_id)

    def import_jsonl(
        self,
        jsonl_path: str | Path,
        name: str,
        base_directory: str | Path | None = None,
    ) -> EvaluationResult:
        run = import_results_jsonl(
            jsonl_path,
            name,
            base_directory,
            synthesize_default_criteria=self._synthesize,
            default_criteria=self._default_criteria,
            metrics=self._metrics,
        )
        self.save(run)
        return run
