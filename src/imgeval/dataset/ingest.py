"""Dataset ingestion for the three upload shapes.

* single-source: one JSONL file whose ``image_path`` values resolve relative to it
* folder scan: a directory of images with no record file
* two-part: an image directory plus a JSONL file whose references are matched
  against the directory listing with :class:`ImagePathMatcher`

Per-line problems become :class:`ValidationIssue` records and never abort the batch.
The size cap only ever produces a warning here; :func:`apply_upload_policy` turns an
oversized single-file upload into a rejection.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable

from imgeval.config.models import AppConfig
from imgeval.constants import IMAGE_EXTENSIONS, MAX_DATASET_SIZE, MAX_FILE_SIZE_BYTES
from imgeval.dataset.matcher import LAST_WINS, ImagePathMatcher
from imgeval.dataset.types import (
    REQUIRED_FIELDS,
    DatasetConfiguration,
    DatasetEntry,
    IssueKind,
    SourceType,
    ValidationIssue,
    ValidationResult,
    ValidationSummary,
    WorkflowMode,
)
from imgeval.errors import DatasetFileError
from imgeval.monitoring.metrics import IngestMetrics
from imgeval.utils.config_io import decode_line, iter_nonblank_lines

ROOT_FOLDER = "root"


class _LineRejected(Exception):
    def __init__(self, code: str, message: str, image_path: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.image_path = image_path


def _normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    return frozenset(
        ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions
    )


def _folder_key(relative_path: str) -> str:
    folder = os.path.dirname(relative_path.replace("\\", "/"))
    return folder if folder else ROOT_FOLDER


def _base_folder_key(resolved: str, base_directory: Path, reference: str) -> str:
    try:
        relative = Path(resolved).relative_to(base_directory).as_posix()
    except ValueError:
        relative = reference
    return _folder_key(relative)


def scan_image_files(folder: Path, extensions: Iterable[str] = IMAGE_EXTENSIONS) -> list[Path]:
    """Recursively list image files under ``folder`` in a stable order.

    Suffix matching is case-insensitive and each file is reported once even on
    case-insensitive filesystems where ``a.JPG`` and ``a.jpg`` name the same file.
    """
    allowed = _normalize_extensions(extensions)
    seen: set[str] = set()
    results: list[Path] = []
    for candidate in sorted(folder.rglob("*")):
        if not candidate.is_file():
            continue
        if candidate.suffix.lower() not in allowed:
            continue
        resolved = candidate.resolve()
        key = os.path.normcase(str(resolved))
        if key in seen:
            continue
        seen.add(key)
        results.append(resolved)
    return results


def resolve_image_path(image_path: str, base_directory: str | Path) -> str:
    """Resolve a record's ``image_path`` against the directory of its JSONL file.

    Tries the path as given when absolute, then joined with ``base_directory``, then
    joined after normalizing separators. Raises ``FileNotFoundError`` otherwise.
    """
    base = Path(base_directory)
    candidate = Path(image_path)
    if candidate.is_absolute() and candidate.is_file():
        return str(candidate.resolve())

    joined = base / image_path
    if joined.is_file():
        return str(joined.resolve())

    normalized = image_path.replace("\\", os.sep).replace("/", os.sep)
    joined = base / normalized
    if joined.is_file():
        return str(joined.resolve())

    raise FileNotFoundError(f"Image not found: {image_path}")


def _parse_record(raw: bytes) -> dict[str, Any]:
    try:
        line = decode_line(raw)
    except UnicodeDecodeError as exc:
        raise _LineRejected("invalid_encoding", f"Line is not valid UTF-8: {exc.reason}") from exc
    try:
        record = json.loads(line)
    except json.JSONDecodeError as exc:
        raise _LineRejected("invalid_json", f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(record, dict):
        raise _LineRejected("not_an_object", "Line is not a JSON object")
    return record


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require_fields(record: dict[str, Any], workflow: WorkflowMode) -> None:
    missing = [name for name in REQUIRED_FIELDS[workflow] if _is_missing(record.get(name))]
    if missing:
        raise _LineRejected(
            "missing_field",
            "Missing required field: " + ", ".join(missing),
            image_path=record.get("image_path") if isinstance(record.get("image_path"), str) else None,
        )
    if not isinstance(record["image_path"], str):
        raise _LineRejected("missing_field", "Field image_path must be a string")
    if workflow is WorkflowMode.IMPORT_RESULTS and not isinstance(record["criteria_scores"], dict):
        raise _LineRejected(
            "missing_field",
            "Field criteria_scores must be an object",
            image_path=record["image_path"],
        )


def _optional_text(record: dict[str, Any], key: str) -> str | None:
    value = record.get(key)
    if value is None:
        return None
    return str(value)


def _build_entry(
    record: dict[str, Any],
    resolved: str,
    workflow: WorkflowMode,
) -> DatasetEntry:
    scores = record.get("criteria_scores")
    return DatasetEntry(
        original_image_path=record["image_path"],
        resolved_image_path=resolved,
        prompt=str(record.get("prompt") or ""),
        response=_optional_text(record, "response"),
        model=_optional_text(record, "model"),
        scores=dict(scores) if workflow is WorkflowMode.IMPORT_RESULTS and isinstance(scores, dict) else None,
    )


class DatasetIngestor:
    def __init__(
        self,
        workflow: WorkflowMode = WorkflowMode.TEST_MODEL,
        max_dataset_size: int = MAX_DATASET_SIZE,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        image_extensions: Iterable[str] = IMAGE_EXTENSIONS,
        collision_policy: str = LAST_WINS,
        metrics: IngestMetrics | None = None,
    ) -> None:
        self._workflow = WorkflowMode(workflow)
        self._max_dataset_size = int(max_dataset_size)
        self._max_file_size_bytes = int(max_file_size_bytes)
        self._extensions = _normalize_extensions(image_extensions)
        self._collision_policy = collision_policy
        self._metrics = metrics
        self._logger = logging.getLogger("imgeval.ingest")

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        workflow: WorkflowMode | str | None = None,
        metrics: IngestMetrics | None = None,
    ) -> "DatasetIngestor":
        return cls(
            workflow=WorkflowMode(workflow or config.dataset.workflow),
            max_dataset_size=config.limits.max_dataset_size,
            max_file_size_bytes=config.limits.max_file_size_bytes,
            image_extensions=config.dataset.image_extensions,
            collision_policy=config.matcher.collision_policy,
            metrics=metrics,
        )

    @property
    def workflow(self) -> WorkflowMode:
        return self._workflow

    def _count(self, name: str, amount: int = 1) -> None:
        if self._metrics is not None:
            self._metrics.add(name, amount)

    def _check_jsonl(self, jsonl_path: Path) -> None:
        if not jsonl_path.is_file():
            raise DatasetFileError(f"Dataset file not found: {jsonl_path}")
        size = jsonl_path.stat().st_size
        if size > self._max_file_size_bytes:
            raise DatasetFileError(
                f"Dataset file is {size} bytes; files larger than "
                f"{self._max_file_size_bytes // (1024 * 1024)}MB are not accepted"
            )

    def _check_folder(self, folder: Path) -> None:
        if not folder.is_dir():
            raise DatasetFileError(f"Image folder not found: {folder}")

    def _check_extension(self, resolved: str, reference: str) -> None:
        suffix = Path(resolved).suffix.lower()
        if suffix not in self._extensions:
            raise _LineRejected(
                "unsupported_format",
                f"Unsupported image format: {suffix or '(none)'}",
                image_path=reference,
            )

    def _limit_warning(self, total: int, unit: str) -> str:
        return (
            f"Dataset contains {total:,} {unit}. Only the first "
            f"{self._max_dataset_size:,} will be processed."
        )

    def _finish(
        self,
        *,
        name: str,
        source_path: Path,
        source_type: SourceType,
        base_directory: Path,
        entries: list[DatasetEntry],
        total: int,
        folder_counts: dict[str, int],
        issues: list[ValidationIssue],
        warnings: list[str],
        summary: ValidationSummary,
        unit: str,
        image_folder: Path | None = None,
        unmatched: list[str] | None = None,
    ) -> DatasetConfiguration:
        if total > self._max_dataset_size:
            message = self._limit_warning(total, unit)
            warnings.append(message)
            issues.append(ValidationIssue(IssueKind.WARNING, "exceeds_limit", message))

        has_errors = any(issue.kind is IssueKind.ERROR for issue in issues)
        result = ValidationResult(
            is_valid=bool(entries) and not has_errors,
            issues=issues,
            warnings=warnings,
            summary=summary,
        )
        dataset = DatasetConfiguration(
            name=name,
            source_path=str(source_path),
            source_type=source_type,
            base_directory=str(base_directory),
            entries=entries,
            total_entries=total,
            folder_structure=folder_counts,
            validation_result=result,
            workflow=self._workflow,
            max_dataset_size=self._max_dataset_size,
            image_folder=str(image_folder) if image_folder is not None else None,
            unmatched_references=list(unmatched or []),
        )
        self._logger.info(
            "dataset ingested source=%s type=%s total=%d valid=%d issues=%d exceeds_limit=%s valid_dataset=%s",
            source_path,
            source_type.value,
            total,
            len(entries),
            len(issues),
            dataset.exceeds_limit,
            result.is_valid,
        )
        return dataset

    def ingest_jsonl(self, jsonl_path: str | Path) -> DatasetConfiguration:
        """Single-source mode: a self-contained JSONL file."""
        path = Path(jsonl_path).expanduser().resolve()
        self._check_jsonl(path)
        base_directory = path.parent

        entries: list[DatasetEntry] = []
        issues: list[ValidationIssue] = []
        folder_counts: dict[str, int] = {}
        total = 0
        missing_files = 0
        unsupported = 0

        for line_number, line in iter_nonblank_lines(path):
            total += 1
            if len(entries) >= self._max_dataset_size:
                continue
            try:
                record = _parse_record(line)
                _require_fields(record, self._workflow)
                reference = record["image_path"]
                try:
                    resolved = resolve_image_path(reference, base_directory)
                except FileNotFoundError as exc:
                    raise _LineRejected("image_not_found", str(exc), image_path=reference) from exc
                self._check_extension(resolved, reference)
                entry = _build_entry(record, resolved, self._workflow)
            except _LineRejected as exc:
                if exc.code == "image_not_found":
                    missing_files += 1
                elif exc.code == "unsupported_format":
                    unsupported += 1
                issues.append(
                    ValidationIssue(
                        IssueKind.ERROR,
                        exc.code,
                        f"Line {line_number}: {exc}",
                        line_number=line_number,
                        image_path=exc.image_path,
                    )
                )
                self._logger.warning(
                    "skipping line=%d code=%s reason=%s",
                    line_number,
                    exc.code,
                    exc,
                    extra={"context": {"source": str(path), "line": line_number, "code": exc.code}},
                )
                continue

            entries.append(entry)
            folder = _base_folder_key(
                entry.resolved_image_path, base_directory, entry.original_image_path
            )
            folder_counts[folder] = folder_counts.get(folder, 0) + 1

        self._count("lines_read", total)
        self._count("entries_accepted", len(entries))
        self._count("lines_skipped", len([i for i in issues if i.line_number is not None]))

        if not entries:
            issues.append(
                ValidationIssue(IssueKind.ERROR, "no_valid_entries", "No valid entries found in dataset file")
            )

        return self._finish(
            name=path.stem,
            source_path=path,
            source_type=SourceType.JSONL_FILE,
            base_directory=base_directory,
            entries=entries,
            total=total,
            folder_counts=folder_counts,
            issues=issues,
            warnings=[],
            summary=ValidationSummary(
                total_files=total,
                valid_files=len(entries),
                missing_files=missing_files,
                unsupported_formats=unsupported,
            ),
            unit="entries",
        )

    def scan_folder(self, folder: str | Path) -> DatasetConfiguration:
        """Folder-scan mode: every allowed image under ``folder`` becomes an entry."""
        root = Path(folder).expanduser().resolve()
        self._check_folder(root)

        image_files = scan_image_files(root, self._extensions)
        total = len(image_files)
        entries: list[DatasetEntry] = []
        folder_counts: dict[str, int] = {}
        for image_path in image_files[: self._max_dataset_size]:
            relative = image_path.relative_to(root).as_posix()
            entries.append(
                DatasetEntry(
                    original_image_path=relative,
                    resolved_image_path=str(image_path),
                )
            )
            folder = _folder_key(relative)
            folder_counts[folder] = folder_counts.get(folder, 0) + 1

        self._count("entries_accepted", len(entries))

        issues: list[ValidationIssue] = []
        if not entries:
            issues.append(
                ValidationIssue(
                    IssueKind.ERROR,
                    "no_images",
                    "No supported image files found in the selected folder.",
                    image_path=str(root),
                )
            )

        return self._finish(
            name=root.name,
            source_path=root,
            source_type=SourceType.IMAGE_FOLDER,
            base_directory=root,
            entries=entries,
            total=total,
            folder_counts=folder_counts,
            issues=issues,
            warnings=[],
            summary=ValidationSummary(total_files=total, valid_files=len(entries)),
            unit="images",
        )

    def ingest_two_part(self, image_folder: str | Path, jsonl_path: str | Path) -> DatasetConfiguration:
        """Two-part mode: JSONL references matched against an image folder listing."""
        folder = Path(image_folder).expanduser().resolve()
        path = Path(jsonl_path).expanduser().resolve()
        self._check_folder(folder)
        self._check_jsonl(path)

        matcher = ImagePathMatcher(
            folder,
            scan_image_files(folder, self._extensions),
            collision_policy=self._collision_policy,
        )
        if matcher.collisions:
            self._logger.warning(
                "ambiguous image keys count=%d policy=%s",
                len(matcher.collisions),
                matcher.collision_policy,
            )

        entries: list[DatasetEntry] = []
        issues: list[ValidationIssue] = []
        unmatched: list[str] = []
        folder_counts: dict[str, int] = {}
        total = 0
        unsupported = 0

        for line_number, line in iter_nonblank_lines(path):
            total += 1
            if len(entries) >= self._max_dataset_size:
                continue
            try:
                record = _parse_record(line)
                reference = record.get("image_path")
                if _is_missing(reference) or not isinstance(reference, str):
                    raise _LineRejected("missing_field", "Missing required field: image_path")
                resolved = matcher.lookup(reference)
                if resolved is None:
                    unmatched.append(reference)
                    issues.append(
                        ValidationIssue(
                            IssueKind.WARNING,
                            "unmatched_image",
                            f"Line {line_number}: no image in folder matches {reference}",
                            line_number=line_number,
                            image_path=reference,
                        )
                    )
                    continue
                _require_fields(record, self._workflow)
                self._check_extension(resolved, reference)
                entry = _build_entry(record, resolved, self._workflow)
            except _LineRejected as exc:
                if exc.code == "unsupported_format":
                    unsupported += 1
                issues.append(
                    ValidationIssue(
                        IssueKind.ERROR,
                        exc.code,
                        f"Line {line_number}: {exc}",
                        line_number=line_number,
                        image_path=exc.image_path,
                    )
                )
                self._logger.warning(
                    "skipping line=%d code=%s reason=%s",
                    line_number,
                    exc.code,
                    exc,
                    extra={"context": {"source": str(path), "line": line_number, "code": exc.code}},
                )
                continue

            entries.append(entry)
            relative = os.path.relpath(entry.resolved_image_path, folder).replace("\\", "/")
            key = _folder_key(relative)
            folder_counts[key] = folder_counts.get(key, 0) + 1

        warnings: list[str] = []
        if unmatched:
            warnings.append(
                f"{len(unmatched)} image reference(s) did not match any file in {folder}"
            )
            self._logger.warning("unmatched image references count=%d folder=%s", len(unmatched), folder)
        if not entries:
            issues.append(
                ValidationIssue(
                    IssueKind.ERROR,
                    "no_matches",
                    "No JSONL image references matched files in the image folder",
                )
            )

        self._count("lines_read", total)
        self._count("entries_accepted", len(entries))
        self._count("unmatched_references", len(unmatched))
        self._count(
            "lines_skipped",
            len([i for i in issues if i.kind is IssueKind.ERROR and i.line_number is not None]),
        )

        return self._finish(
            name=path.stem,
            source_path=path,
            source_type=SourceType.JSONL_FILE,
            base_directory=folder,
            entries=entries,
            total=total,
            folder_counts=folder_counts,
            issues=issues,
            warnings=warnings,
            summary=ValidationSummary(
                total_files=total,
                valid_files=len(entries),
                missing_files=len(unmatched),
                unsupported_formats=unsupported,
            ),
            unit="entries",
            image_folder=folder,
            unmatched=unmatched,
        )

    def ingest(
        self,
        jsonl_path: str | Path | None = None,
        image_folder: str | Path | None = None,
    ) -> DatasetConfiguration:
        """Pick the mode from the inputs given and apply the upload size policy."""
        if jsonl_path is not None and image_folder is not None:
            dataset = self.ingest_two_part(image_folder, jsonl_path)
        elif jsonl_path is not None:
            dataset = self.ingest_jsonl(jsonl_path)
        elif image_folder is not None:
            dataset = self.scan_folder(image_folder)
        else:
            raise DatasetFileError("Provide a JSONL file, an image folder, or both")
        return apply_upload_policy(dataset)


def apply_upload_policy(dataset: DatasetConfiguration) -> DatasetConfiguration:
    """Reject oversized single-file JSONL uploads; folder and two-part uploads truncate."""
    if not dataset.exceeds_limit:
        return dataset
    if dataset.source_type is not SourceType.JSONL_FILE or dataset.is_two_part:
        return dataset
    if any(issue.code == "exceeds_limit" and issue.kind is IssueKind.ERROR for issue in dataset.validation_result.issues):
        return dataset

    issue = ValidationIssue(
        IssueKind.ERROR,
        "exceeds_limit",
        f"Dataset file contains {dataset.total_entries:,} entries; single-file uploads "
        f"are limited to {dataset.max_dataset_size:,}.",
    )
    result = replace(
        dataset.validation_result,
        is_valid=False,
        issues=[*dataset.validation_result.issues, issue],
    )
    logging.getLogger("imgeval.ingest").warning(
        "rejecting oversized dataset source=%s total=%d limit=%d",
        dataset.source_path,
        dataset.total_entries,
        dataset.max_dataset_size,
    )
    return replace(dataset, validation_result=result)


def backfill_model_name(dataset: DatasetConfiguration, model: str) -> DatasetConfiguration:
    """Return a copy whose entries without a model name take ``model``."""
    entries = [
        entry if not _is_missing(entry.model) else replace(entry, model=model)
        for entry in dataset.entries
    ]
    return replace(dataset, entries=entries)
