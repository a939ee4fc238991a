from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WorkflowMode(str, Enum):
    TEST_MODEL = "test_model"
    EVALUATE_RESPONSES = "evaluate_responses"
    IMPORT_RESULTS = "import_results"


REQUIRED_FIELDS: dict[WorkflowMode, tuple[str, ...]] = {
    WorkflowMode.TEST_MODEL: ("image_path",),
    WorkflowMode.EVALUATE_RESPONSES: ("image_path", "prompt", "response", "model"),
    WorkflowMode.IMPORT_RESULTS: (
        "image_path",
        "prompt",
        "response",
        "model",
        "criteria_scores",
    ),
}


class SourceType(str, Enum):
    JSONL_FILE = "jsonl_file"
    IMAGE_FOLDER = "image_folder"


class IssueKind(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    code: str
    message: str
    line_number: int | None = None
    image_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            "line_number": self.line_number,
            "image_path": self.image_path,
        }


@dataclass(frozen=True)
class ValidationSummary:
    total_files: int = 0
    valid_files: int = 0
    missing_files: int = 0
    unsupported_formats: int = 0


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    summary: ValidationSummary = field(default_factory=ValidationSummary)

    @property
    def has_errors(self) -> bool:
        return any(issue.kind is IssueKind.ERROR for issue in self.issues)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "issues": [issue.to_dict() for issue in self.issues],
            "warnings": list(self.warnings),
            "summary": {
                "total_files": self.summary.total_files,
                "valid_files": self.summary.valid_files,
                "missing_files": self.summary.missing_files,
                "unsupported_formats": self.summary.unsupported_formats,
            },
        }


@dataclass(frozen=True)
class DatasetEntry:
    original_image_path: str
    resolved_image_path: str
    prompt: str = ""
    response: str | None = None
    model: str | None = None
    scores: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_image_path": self.original_image_path,
            "resolved_image_path": self.resolved_image_path,
            "prompt": self.prompt,
            "response": self.response,
            "model": self.model,
            "scores": self.scores,
        }


@dataclass(frozen=True)
class DatasetConfiguration:
    """Snapshot of one upload attempt. Rebuilt wholesale on re-upload."""

    name: str
    source_path: str
    source_type: SourceType
    base_directory: str
    entries: list[DatasetEntry]
    total_entries: int
    folder_structure: dict[str, int]
    validation_result: ValidationResult
    workflow: WorkflowMode = WorkflowMode.TEST_MODEL
    max_dataset_size: int = 1000
    image_folder: str | None = None
    unmatched_references: list[str] = field(default_factory=list)

    @property
    def valid_entries(self) -> int:
        return len(self.entries)

    @property
    def exceeds_limit(self) -> bool:
        return self.total_entries > self.max_dataset_size

    @property
    def is_valid(self) -> bool:
        return self.validation_result.is_valid

    @property
    def is_two_part(self) -> bool:
        return self.image_folder is not None

    def to_dict(self, include_entries: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "source_path": self.source_path,
            "source_type": self.source_type.value,
            "workflow": self.workflow.value,
            "base_directory": self.base_directory,
            "image_folder": self.image_folder,
            "total_entries": self.total_entries,
            "valid_entries": self.valid_entries,
            "exceeds_limit": self.exceeds_limit,
            "folder_structure": dict(self.folder_structure),
            "unmatched_references": list(self.unmatched_references),
            "validation": self.validation_result.to_dict(),
        }
        if include_entries:
            payload["entries"] = [entry.to_dict() for entry in self.entries]
        return payload
