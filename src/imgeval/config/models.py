from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from imgeval.constants import (
    DEFAULT_PLACEHOLDER_CRITERIA,
    IMAGE_EXTENSIONS,
    MAX_DATASET_SIZE,
    MAX_FILE_SIZE_BYTES,
)


@dataclass
class LimitsConfig:
    max_dataset_size: int = MAX_DATASET_SIZE
    max_file_size_mb: int = MAX_FILE_SIZE_BYTES // (1024 * 1024)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class DatasetConfig:
    workflow: str = "test_model"
    image_extensions: list[str] = field(
        default_factory=lambda: sorted(IMAGE_EXTENSIONS)
    )


@dataclass
class MatcherConfig:
    collision_policy: str = "last_wins"


@dataclass
class StoreConfig:
    root: str = "artifacts/evaluations"
    synthesize_default_criteria: bool = True
    default_criteria: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_PLACEHOLDER_CRITERIA)
    )


@dataclass
class MonitoringConfig:
    json_logs: bool = False
    log_level: str = "INFO"
    prometheus_enabled: bool = False
    prometheus_host: str = "0.0.0.0"
    prometheus_port: int = 9109


@dataclass
class AppConfig:
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def as_log_context(self) -> dict[str, Any]:
        return {
            "workflow": self.dataset.workflow,
            "max_dataset_size": self.limits.max_dataset_size,
            "max_file_size_mb": self.limits.max_file_size_mb,
            "collision_policy": self.matcher.collision_policy,
            "store_root": self.store.root,
            "json_logs": self.monitoring.json_logs,
        }
