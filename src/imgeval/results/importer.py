from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from imgeval.constants import DEFAULT_PLACEHOLDER_CRITERIA, MAX_FILE_SIZE_BYTES, UNKNOWN_MODEL
from imgeval.errors import ResultsImportError
from imgeval.monitoring.metrics import IngestMetrics
from imgeval.results.models import (
    EvaluationItemResult,
    EvaluationResult,
    EvaluationStatus,
    EvaluationWorkflow,
)
from imgeval.results.scoring import (
    aggregate_criteria,
    build_folder_statistics,
    capture_metadata,
    extract_criteria_scores,
)
from imgeval.utils.config_io import decode_line, iter_nonblank_lines

LOGGER = logging.getLogger("imgeval.results")


def _text(record: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value)
    return ""


def _relative_path(image_path: str, explicit: str, base_directory: Path | None) -> str:
    if explicit:
        return explicit.replace("\\", "/")
    if not image_path:
        return ""
    candidate = Path(image_path)
    if candidate.is_absolute():
        if base_directory is not None:
            try:
                return candidate.relative_to(base_directory).as_posix()
            except ValueError:
                pass
        return candidate.name
    return image_path.replace("\\", "/")


def _processing_time(raw: Any) -> float:
    if isinstance(raw, bool):
        return 0.0
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return 0.0


def _error(raw: Any) -> str | None:
    if raw is None or raw is False:
        return None
    text = str(raw).strip()
    return text or None


def parse_item(
    record: dict[str, Any],
    base_directory: Path | None = None,
) -> EvaluationItemResult:
    image_path = _text(record, "image_path", "image")
    scores_raw = record.get("criteria_scores")
    if scores_raw is None:
        scores_raw = record.get("scores")
    item_id = record.get("id")
    return EvaluationItemResult(
        id=str(item_id) if item_id is not None else str(uuid.uuid4()),
        image_path=image_path,
        relative_path=_relative_path(image_path, _text(record, "relative_path"), base_directory),
        prompt=_text(record, "prompt"),
        model_response=_text(record, "model_response", "response"),
        criteria_scores=extract_criteria_scores(scores_raw),
        processing_time=_processing_time(record.get("processing_time")),
        error=_error(record.get("error")),
        custom_metadata=capture_metadata(record),
    )


def import_results_jsonl(
    jsonl_path: str | Path,
    name: str,
    base_directory: str | Path | None = None,
    *,
    synthesize_default_criteria: bool = True,
    default_criteria: dict[str, float] | None = None,
    max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
    metrics: IngestMetrics | None = None,
    run_id: str | None = None,
    timestamp: datetime | None = None,
) -> EvaluationResult:
    """Turn an externally produced results JSONL into an aggregated run.

    Lines that are not JSON objects are skipped. The run's criteria, folder rollup
    and item count are all derived from the parsed items.
    """
    path = Path(jsonl_path).expanduser().resolve()
    if not path.is_file():
        raise ResultsImportError(f"Results file not found: {path}")
    size = path.stat().st_size
    if size > max_file_size_bytes:
        raise ResultsImportError(
            f"Results file is {size} bytes; limit is {max_file_size_bytes} bytes"
        )
    base = Path(base_directory).expanduser().resolve() if base_directory else path.parent

    items: list[EvaluationItemResult] = []
    model_name: str | None = None
    lines_read = 0
    skipped = 0
    try:
        for line_number, line in iter_nonblank_lines(path):
            lines_read += 1
            try:
                record = json.loads(decode_line(line))
            except UnicodeDecodeError as exc:
                skipped += 1
                LOGGER.warning("skipping results line=%d reason=%s", line_number, exc.reason)
                continue
            except json.JSONDecodeError as exc:
                skipped += 1
                LOGGER.warning("skipping results line=%d reason=%s", line_number, exc.msg)
                continue
            if not isinstance(record, dict):
                skipped += 1
                LOGGER.warning("skipping results line=%d reason=not an object", line_number)
                continue
            if model_name is None:
                model = _text(record, "model")
                if model:
                    model_name = model
            items.append(parse_item(record, base))
    except OSError as exc:
        raise ResultsImportError(f"Unable to read results file {path}: {exc}") from exc

    criteria = aggregate_criteria(items)
    synthesized = False
    if not criteria:
        if not synthesize_default_criteria:
            raise ResultsImportError(f"No criteria scores found in {path}")
        placeholder = DEFAULT_PLACEHOLDER_CRITERIA if default_criteria is None else default_criteria
        criteria = {str(k): float(v) for k, v in placeholder.items()}
        synthesized = True
        LOGGER.warning(
            "no criteria scores found, using placeholder criteria path=%s criteria=%s",
            path,
            sorted(criteria),
        )

    total_time = sum(item.processing_time for item in items)
    run = EvaluationResult(
        id=run_id or str(uuid.uuid4()),
        name=name,
        model_name=model_name or UNKNOWN_MODEL,
        dataset_name=path.stem,
        dataset_item_count=len({item.image_path for item in items if item.image_path}),
        workflow=EvaluationWorkflow.IMPORT_RESULTS,
        status=EvaluationStatus.IMPORTED,
        timestamp=timestamp or datetime.now(timezone.utc),
        duration=total_time if total_time > 0 else None,
        criteria_scores=criteria,
        criteria_synthesized=synthesized,
        item_results=items,
        folder_statistics=build_folder_statistics(items),
    )

    if metrics is not None:
        metrics.add("lines_read", lines_read)
        metrics.add("lines_skipped", skipped)
        metrics.add("runs_imported")

    LOGGER.info(
        "results imported run_id=%s path=%s items=%d skipped=%d criteria=%d average=%.1f",
        run.id,
        os.fspath(path),
        len(items),
        skipped,
        len(criteria),
        run.average_score,
    )
    return run
