from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf

from imgeval.config.defaults import DEFAULT_CONFIG
from imgeval.config.models import (
    AppConfig,
    DatasetConfig,
    LimitsConfig,
    MatcherConfig,
    MonitoringConfig,
    StoreConfig,
)
from imgeval.dataset.types import WorkflowMode
from imgeval.errors import ConfigError
from imgeval.utils.config_io import deep_merge

_CONFIG_CANDIDATES = (
    "imgeval.toml",
    "imgeval.yaml",
    "imgeval.yml",
    "imgeval.json",
    "settings.toml",
    "settings.yaml",
    "settings.yml",
    "settings.json",
)

_COLLISION_POLICIES = {"last_wins", "first_wins"}


def _lower_keys(obj: Any, depth: int = 2) -> Any:
    # Section and option names are case-folded; criterion names keep their case.
    if depth <= 0 or not isinstance(obj, dict):
        return obj
    return {str(k).lower(): _lower_keys(v, depth - 1) for k, v in obj.items()}


def _load_with_dynaconf(config_paths: list[Path]) -> dict[str, Any]:
    settings = Dynaconf(
        envvar_prefix="IMGEVAL",
        settings_files=[str(path) for path in config_paths],
        merge_enabled=True,
        environments=False,
        load_dotenv=True,
    )
    return _lower_keys(settings.as_dict())


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _resolve_root_relative(path_value: str, root: Path) -> str:
    p = Path(path_value).expanduser()
    if p.is_absolute():
        return str(p)
    return str((root / p).resolve())


def _normalize_extension(value: Any) -> str:
    ext = str(value).strip().lower()
    if not ext:
        raise ConfigError("dataset.image_extensions contains an empty value")
    return ext if ext.startswith(".") else f".{ext}"


def _normalize(data: dict[str, Any], root: Path) -> AppConfig:
    limits_data = data.get("limits", {})
    dataset_data = data.get("dataset", {})
    matcher_data = data.get("matcher", {})
    store_data = data.get("store", {})
    monitoring_data = data.get("monitoring", {})

    max_dataset_size = int(limits_data.get("max_dataset_size", 1000))
    max_file_size_mb = int(limits_data.get("max_file_size_mb", 100))
    if max_dataset_size <= 0:
        raise ConfigError(f"limits.max_dataset_size must be positive, got {max_dataset_size}")
    if max_file_size_mb <= 0:
        raise ConfigError(f"limits.max_file_size_mb must be positive, got {max_file_size_mb}")

    workflow = str(dataset_data.get("workflow", "test_model")).lower()
    try:
        WorkflowMode(workflow)
    except ValueError as exc:
        raise ConfigError(f"Unsupported dataset.workflow: {workflow}") from exc

    collision_policy = str(matcher_data.get("collision_policy", "last_wins")).lower()
    if collision_policy not in _COLLISION_POLICIES:
        raise ConfigError(
            f"Unsupported matcher.collision_policy: {collision_policy} "
            f"(expected one of {sorted(_COLLISION_POLICIES)})"
        )

    extensions = sorted(
        {_normalize_extension(v) for v in dataset_data.get("image_extensions", [])}
    )
    if not extensions:
        raise ConfigError("dataset.image_extensions must not be empty")

    return AppConfig(
        limits=LimitsConfig(
            max_dataset_size=max_dataset_size,
            max_file_size_mb=max_file_size_mb,
        ),
        dataset=DatasetConfig(
            workflow=workflow,
            image_extensions=extensions,
        ),
        matcher=MatcherConfig(collision_policy=collision_policy),
        store=StoreConfig(
            root=_resolve_root_relative(str(store_data.get("root", "artifacts/evaluations")), root),
            synthesize_default_criteria=_coerce_bool(
                store_data.get("synthesize_default_criteria", True)
            ),
            default_criteria={
                str(name): float(score)
                for name, score in (store_data.get("default_criteria") or {}).items()
            },
        ),
        monitoring=MonitoringConfig(
            json_logs=_coerce_bool(monitoring_data.get("json_logs", False)),
            log_level=str(monitoring_data.get("log_level", "INFO")).upper(),
            prometheus_enabled=_coerce_bool(
                monitoring_data.get("prometheus_enabled", False)
            ),
            prometheus_host=str(monitoring_data.get("prometheus_host", "0.0.0.0")),
            prometheus_port=int(monitoring_data.get("prometheus_port", 9109)),
        ),
    )


def _default_config_copy() -> dict[str, Any]:
    return json.loads(json.dumps(DEFAULT_CONFIG))


def load_app_config(
    root: Path,
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    config_paths: list[Path] = []
    if config_path:
        explicit = Path(config_path)
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        config_paths.append(explicit)
    else:
        for name in _CONFIG_CANDIDATES:
            candidate = root / name
            if candidate.exists():
                config_paths.append(candidate)

    merged = _default_config_copy()
    # Placeholder criteria are replaced as a whole, never merged key by key.
    file_data = _load_with_dynaconf(config_paths)
    if "default_criteria" in file_data.get("store", {}):
        merged["store"]["default_criteria"] = {}
    deep_merge(merged, file_data)

    if cli_overrides:
        deep_merge(merged, _lower_keys(cli_overrides))

    return _normalize(merged, root)


def app_config_to_dict(config: AppConfig) -> dict[str, Any]:
    return asdict(config)
