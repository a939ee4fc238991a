from __future__ import annotations

import ntpath
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from imgeval.dataset.types import WorkflowMode

# Runs record which workflow produced them with the same values datasets use.
EvaluationWorkflow = WorkflowMode


class EvaluationStatus(str, Enum):
    DRAFT = "draft"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    IMPORTED = "imported"


class ScoreRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_IMPROVEMENT = "needs_improvement"

    @classmethod
    def from_score(cls, score: float) -> "ScoreRating":
        if score >= 4.5:
            return cls.EXCELLENT
        if score >= 3.75:
            return cls.GOOD
        if score >= 3.0:
            return cls.FAIR
        return cls.NEEDS_IMPROVEMENT


class MetadataKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class MetadataValue:
    """A JSON value kept together with its type tag.

    ``value`` holds a plain scalar for scalar kinds, a tuple of ``MetadataValue``
    for arrays and a ``dict[str, MetadataValue]`` for objects.
    """

    kind: MetadataKind
    value: Any = None

    @classmethod
    def from_json(cls, raw: Any) -> "MetadataValue":
        if raw is None:
            return cls(MetadataKind.NULL)
        # bool is a subclass of int, so it has to be checked first.
        if isinstance(raw, bool):
            return cls(MetadataKind.BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            return cls(MetadataKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(MetadataKind.STRING, raw)
        if isinstance(raw, (list, tuple)):
            return cls(MetadataKind.ARRAY, tuple(cls.from_json(item) for item in raw))
        if isinstance(raw, dict):
            return cls(MetadataKind.OBJECT, {str(k): cls.from_json(v) for k, v in raw.items()})
        raise TypeError(f"Unsupported metadata value type: {type(raw).__name__}")

    def to_json(self) -> Any:
        if self.kind is MetadataKind.ARRAY:
            return [item.to_json() for item in self.value]
        if self.kind is MetadataKind.OBJECT:
            return {key: item.to_json() for key, item in self.value.items()}
        if self.kind is MetadataKind.NULL:
            return None
        return self.value

    def to_tagged(self) -> dict[str, Any]:
        if self.kind is MetadataKind.ARRAY:
            value: Any = [item.to_tagged() for item in self.value]
        elif self.kind is MetadataKind.OBJECT:
            value = {key: item.to_tagged() for key, item in self.value.items()}
        else:
            value = self.to_json()
        return {"kind": self.kind.value, "value": value}

    @classmethod
    def from_tagged(cls, payload: dict[str, Any]) -> "MetadataValue":
        kind = MetadataKind(payload["kind"])
        raw = payload.get("value")
        if kind is MetadataKind.ARRAY:
            return cls(kind, tuple(cls.from_tagged(item) for item in raw or []))
        if kind is MetadataKind.OBJECT:
            return cls(kind, {key: cls.from_tagged(item) for key, item in (raw or {}).items()})
        if kind is MetadataKind.NULL:
            return cls(kind)
        return cls(kind, raw)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


@dataclass
class EvaluationItemResult:
    id: str
    image_path: str = ""
    relative_path: str = ""
    prompt: str = ""
    model_response: str = ""
    criteria_scores: dict[str, float] = field(default_factory=dict)
    processing_time: float = 0.0
    error: str | None = None
    custom_metadata: dict[str, MetadataValue] | None = None

    @property
    def average_score(self) -> float:
        return _mean(list(self.criteria_scores.values()))

    @property
    def is_success(self) -> bool:
        return not self.error

    @property
    def has_custom_metadata(self) -> bool:
        return bool(self.custom_metadata)

    @property
    def file_name(self) -> str:
        if not self.image_path:
            return ""
        return ntpath.basename(self.image_path)

    @property
    def folder_path(self) -> str:
        if not self.relative_path:
            return ""
        folder = posixpath.dirname(self.relative_path.replace("\\", "/"))
        return folder if folder else "/"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "image_path": self.image_path,
            "relative_path": self.relative_path,
            "prompt": self.prompt,
            "model_response": self.model_response,
            "criteria_scores": dict(self.criteria_scores),
            "processing_time": self.processing_time,
            "error": self.error,
            "custom_metadata": (
                {key: value.to_tagged() for key, value in self.custom_metadata.items()}
                if self.custom_metadata
                else None
            ),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "EvaluationItemResult":
        metadata = payload.get("custom_metadata")
        return cls(
            id=str(payload["id"]),
            image_path=str(payload.get("image_path", "")),
            relative_path=str(payload.get("relative_path", "")),
            prompt=str(payload.get("prompt", "")),
            model_response=str(payload.get("model_response", "")),
            criteria_scores={str(k): float(v) for k, v in (payload.get("criteria_scores") or {}).items()},
            processing_time=float(payload.get("processing_time") or 0.0),
            error=payload.get("error"),
            custom_metadata=(
                {key: MetadataValue.from_tagged(value) for key, value in metadata.items()}
                if metadata
                else None
            ),
        )


@dataclass
class FolderStats:
    folder_path: str
    item_count: int = 0
    average_scores: dict[str, float] = field(default_factory=dict)
    success_rate: float = 0.0

    @property
    def overall_average_score(self) -> float:
        return _mean(list(self.average_scores.values()))

    def is_above_average(self, overall_average: float) -> bool:
        return self.overall_average_score > overall_average

    @property
    def folder_name(self) -> str:
        if not self.folder_path:
            return ""
        if self.folder_path in ("/", "\\"):
            return "Root"
        parts = [part for part in self.folder_path.replace("\\", "/").split("/") if part]
        return parts[-1] if parts else self.folder_path

    @property
    def parent_path(self) -> str:
        if not self.folder_path or self.folder_path in ("/", "\\"):
            return ""
        separator = max(self.folder_path.rfind("/"), self.folder_path.rfind("\\"))
        if separator <= 0:
            return "/"
        return self.folder_path[:separator]

    def to_dict(self) -> dict[str, Any]:
        return {
            "folder_path": self.folder_path,
            "item_count": self.item_count,
            "average_scores": dict(self.average_scores),
            "success_rate": self.success_rate,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FolderStats":
        return cls(
            folder_path=str(payload["folder_path"]),
            item_count=int(payload.get("item_count", 0)),
            average_scores={str(k): float(v) for k, v in (payload.get("average_scores") or {}).items()},
            success_rate=float(payload.get("success_rate", 0.0)),
        )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(str(value))


@dataclass
class EvaluationResult:
    """Run aggregate.

    ``criteria_scores`` is always the re-aggregation of ``item_results`` when those
    are attached; build runs through ``imgeval.results.scoring`` instead of editing
    the two independently. Detail fields stay ``None`` until loaded.
    """

    id: str
    name: str
    model_name: str
    dataset_name: str
    dataset_item_count: int = 0
    workflow: WorkflowMode = WorkflowMode.IMPORT_RESULTS
    status: EvaluationStatus = EvaluationStatus.IMPORTED
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float | None = None
    criteria_scores: dict[str, float] = field(default_factory=dict)
    criteria_synthesized: bool = False
    item_results: list[EvaluationItemResult] | None = None
    folder_statistics: dict[str, FolderStats] | None = None

    @property
    def average_score(self) -> float:
        if not self.criteria_scores:
            return 0.0
        return round(_mean(list(self.criteria_scores.values())), 1)

    @property
    def rating(self) -> ScoreRating:
        return ScoreRating.from_score(self.average_score)

    @property
    def item_count(self) -> int:
        return self.dataset_item_count

    @property
    def description(self) -> str:
        return f"{self.dataset_name} • {self.dataset_item_count} items"

    @property
    def has_detailed_results(self) -> bool:
        return bool(self.item_results)

    def summary_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "model_name": self.model_name,
            "dataset_name": self.dataset_name,
            "dataset_item_count": self.dataset_item_count,
            "workflow": self.workflow.value,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "duration": self.duration,
            "criteria_scores": dict(self.criteria_scores),
            "criteria_synthesized": self.criteria_synthesized,
        }

    def to_dict(self, include_detail: bool = False) -> dict[str, Any]:
        payload = self.summary_dict()
        payload["average_score"] = self.average_score
        payload["rating"] = self.rating.value
        if include_detail:
            payload["item_results"] = (
                [item.to_dict() for item in self.item_results] if self.item_results is not None else None
            )
            payload["folder_statistics"] = (
                {key: stats.to_dict() for key, stats in self.folder_statistics.items()}
                if self.folder_statistics is not None
                else None
            )
        return payload

    @classmethod
    def from_summary_dict(cls, payload: dict[str, Any]) -> "EvaluationResult":
        duration = payload.get("duration")
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            model_name=str(payload.get("model_name", "")),
            dataset_name=str(payload.get("dataset_name", "")),
            dataset_item_count=int(payload.get("dataset_item_count", 0)),
            workflow=WorkflowMode(payload.get("workflow", WorkflowMode.IMPORT_RESULTS.value)),
            status=EvaluationStatus(payload.get("status", EvaluationStatus.IMPORTED.value)),
            timestamp=_parse_timestamp(payload.get("timestamp")),
            duration=float(duration) if duration is not None else None,
            criteria_scores={str(k): float(v) for k, v in (payload.get("criteria_scores") or {}).items()},
            criteria_synthesized=bool(payload.get("criteria_synthesized", False)),
        )
