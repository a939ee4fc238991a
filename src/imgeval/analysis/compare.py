from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from imgeval.analysis.statistics import mean, population_variance, standard_deviation
from imgeval.constants import MAX_COMPARE_RUNS, MIN_COMPARE_RUNS
from imgeval.errors import ComparisonError
from imgeval.results.models import EvaluationResult


@dataclass(frozen=True)
class RunRanking:
    run_id: str
    name: str
    average: float
    rank: int


@dataclass(frozen=True)
class CriterionRow:
    criterion: str
    scores: dict[str, float]
    best_run_id: str
    delta: float


@dataclass(frozen=True)
class BestPerformer:
    criterion: str
    run_id: str
    gap: float


@dataclass
class ComparisonReport:
    run_ids: list[str]
    run_names: dict[str, str]
    common_criteria: list[str]
    scores: dict[str, dict[str, float]]
    rankings: list[RunRanking] = field(default_factory=list)
    win_counts: dict[str, int] = field(default_factory=dict)
    most_consistent: str | None = None
    best_performer: BestPerformer | None = None
    most_agreement: str | None = None

    @property
    def rows(self) -> list[CriterionRow]:
        rows: list[CriterionRow] = []
        for criterion in self.common_criteria:
            per_run = {run_id: self.scores[run_id][criterion] for run_id in self.run_ids}
            best = max(per_run.values())
            rows.append(
                CriterionRow(
                    criterion=criterion,
                    scores=per_run,
                    best_run_id=next(run_id for run_id in self.run_ids if per_run[run_id] == best),
                    delta=round(best - min(per_run.values()), 2),
                )
            )
        return rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_ids": list(self.run_ids),
            "run_names": dict(self.run_names),
            "common_criteria": list(self.common_criteria),
            "scores": {run_id: dict(values) for run_id, values in self.scores.items()},
            "rankings": [
                {"rank": r.rank, "run_id": r.run_id, "name": r.name, "average": r.average}
                for r in self.rankings
            ],
            "win_counts": dict(self.win_counts),
            "most_consistent": self.most_consistent,
            "best_performer": (
                {
                    "criterion": self.best_performer.criterion,
                    "run_id": self.best_performer.run_id,
                    "gap": self.best_performer.gap,
                }
                if self.best_performer is not None
                else None
            ),
            "most_agreement": self.most_agreement,
            "rows": [
                {
                    "criterion": row.criterion,
                    "scores": dict(row.scores),
                    "best_run_id": row.best_run_id,
                    "delta": row.delta,
                }
                for row in self.rows
            ],
        }


def common_criteria(runs: Sequence[EvaluationResult]) -> list[str]:
    if not runs:
        return []
    shared = set(runs[0].criteria_scores)
    for run in runs[1:]:
        shared &= set(run.criteria_scores)
    return sorted(shared)


def compare_runs(runs: Sequence[EvaluationResult]) -> ComparisonReport:
    """Compare two to five runs over the criteria they all share.

    Rankings sort by mean score descending and keep input order on ties. A win is
    counted for every run whose score equals the best score for a criterion.
    """
    if not MIN_COMPARE_RUNS <= len(runs) <= MAX_COMPARE_RUNS:
        raise ComparisonError(
            f"Comparison needs {MIN_COMPARE_RUNS}-{MAX_COMPARE_RUNS} runs, got {len(runs)}"
        )
    run_ids = [run.id for run in runs]
    if len(set(run_ids)) != len(run_ids):
        raise ComparisonError("Comparison runs must have distinct ids")

    criteria = common_criteria(runs)
    if not criteria:
        raise ComparisonError("Selected runs share no evaluation criteria")

    scores = {
        run.id: {criterion: float(run.criteria_scores.get(criterion, 0.0)) for criterion in criteria}
        for run in runs
    }

    averages = {run_id: mean(list(values.values())) for run_id, values in scores.items()}
    # sorted() is stable, so equal averages keep input order.
    ordered = sorted(runs, key=lambda run: averages[run.id], reverse=True)
    rankings = [
        RunRanking(run_id=run.id, name=run.name, average=round(averages[run.id], 2), rank=index)
        for index, run in enumerate(ordered, start=1)
    ]

    win_counts = {run_id: 0 for run_id in run_ids}
    best_performer: BestPerformer | None = None
    widest_gap = 0.0
    most_agreement: str | None = None
    lowest_variance: float | None = None
    for criterion in criteria:
        column = [scores[run_id][criterion] for run_id in run_ids]
        best = max(column)
        for run_id in run_ids:
            if scores[run_id][criterion] == best:
                win_counts[run_id] += 1

        gap = best - min(column)
        if gap > widest_gap:
            widest_gap = gap
            leader = next(run_id for run_id in run_ids if scores[run_id][criterion] == best)
            best_performer = BestPerformer(criterion=criterion, run_id=leader, gap=round(gap, 2))

        variance = population_variance(column)
        if lowest_variance is None or variance < lowest_variance:
            lowest_variance = variance
            most_agreement = criterion

    most_consistent = min(
        run_ids, key=lambda run_id: standard_deviation(list(scores[run_id].values()))
    )

    logging.getLogger("imgeval.compare").info(
        "runs compared count=%d criteria=%d leader=%s",
        len(runs),
        len(criteria),
        rankings[0].run_id,
    )
    return ComparisonReport(
        run_ids=run_ids,
        run_names={run.id: run.name for run in runs},
        common_criteria=criteria,
        scores=scores,
        rankings=rankings,
        win_counts=win_counts,
        most_consistent=most_consistent,
        best_performer=best_performer,
        most_agreement=most_agreement,
    )
