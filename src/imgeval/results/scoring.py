"""Score normalization and run/folder aggregation.

Run-level criteria and folder rollups are both derived from the item list here, so
that a run's summary can always be recomputed from its detail.
"""
from __future__ import annotations

import math
from typing import Any, Iterable

from imgeval.analysis.statistics import (
    BoxPlotSummary,
    StatisticalSummary,
    box_plot_summary,
    mean,
    summarize,
)
from imgeval.constants import SCORE_MAX, SCORE_MIN
from imgeval.results.models import (
    EvaluationItemResult,
    EvaluationResult,
    FolderStats,
    MetadataValue,
)

KNOWN_FIELDS = frozenset(
    {
        "id",
        "image_path",
        "image",
        "relative_path",
        "prompt",
        "response",
        "model_response",
        "model",
        "criteria_scores",
        "scores",
        "processing_time",
        "error",
    }
)


def normalize_score(value: float) -> float:
    """Map a raw score onto the 0-5 scale.

    Values in [0, 1] are taken as normalized and scaled by 5; everything is then
    clamped to [0, 5].
    """
    score = float(value)
    if 0.0 <= score <= 1.0:
        score *= SCORE_MAX
    return max(SCORE_MIN, min(SCORE_MAX, score))


def _as_number(raw: Any) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    value = float(raw)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def extract_score(raw: Any) -> float | None:
    """Read a bare number or ``{"score": number}``; ``None`` when neither."""
    if isinstance(raw, dict):
        raw = raw.get("score")
    value = _as_number(raw)
    if value is None:
        return None
    return normalize_score(value)


def extract_criteria_scores(raw: Any) -> dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    scores: dict[str, float] = {}
    for criterion, value in raw.items():
        score = extract_score(value)
        if score is not None:
            scores[str(criterion)] = score
    return scores


def capture_metadata(record: dict[str, Any]) -> dict[str, MetadataValue] | None:
    extra = {
        str(key): MetadataValue.from_json(value)
        for key, value in record.items()
        if key not in KNOWN_FIELDS
    }
    return extra or None


def _criterion_lists(items: Iterable[EvaluationItemResult]) -> dict[str, list[float]]:
    collected: dict[str, list[float]] = {}
    for item in items:
        if not item.is_success:
            continue
        for criterion, score in item.criteria_scores.items():
            collected.setdefault(criterion, []).append(score)
    return collected


def aggregate_criteria(items: Iterable[EvaluationItemResult], digits: int = 1) -> dict[str, float]:
    """Per-criterion mean over successful items, rounded to ``digits`` places."""
    return {
        criterion: round(mean(scores), digits)
        for criterion, scores in sorted(_criterion_lists(items).items())
        if scores
    }


def build_folder_statistics(items: Iterable[EvaluationItemResult]) -> dict[str, FolderStats]:
    groups: dict[str, list[EvaluationItemResult]] = {}
    for item in items:
        groups.setdefault(item.folder_path or "/", []).append(item)

    stats: dict[str, FolderStats] = {}
    for folder in sorted(groups):
        members = groups[folder]
        succeeded = sum(1 for item in members if item.is_success)
        stats[folder] = FolderStats(
            folder_path=folder,
            item_count=len(members),
            average_scores=aggregate_criteria(members),
            success_rate=round(succeeded / len(members) * 100.0, 1),
        )
    return stats


def recompute_run_criteria(run: EvaluationResult) -> dict[str, float] | None:
    """Aggregate criteria from attached detail; ``None`` when no detail is loaded."""
    if run.item_results is None:
        return None
    if run.criteria_synthesized:
        return dict(run.criteria_scores)
    return aggregate_criteria(run.item_results)


def statistical_summary(run: EvaluationResult) -> StatisticalSummary | None:
    if not run.item_results:
        return None
    return summarize([item.average_score for item in run.item_results if item.is_success])


def criterion_statistics(run: EvaluationResult, criterion: str) -> StatisticalSummary | None:
    if not run.item_results:
        return None
    return summarize(_criterion_lists(run.item_results).get(criterion, []))


def criterion_box_plots(run: EvaluationResult) -> dict[str, BoxPlotSummary]:
    if not run.item_results:
        return {}
    return {
        criterion: box_plot_summary(scores)
        for criterion, scores in sorted(_criterion_lists(run.item_results).items())
    }
