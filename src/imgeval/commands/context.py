from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from imgeval.config.loader import load_app_config
from imgeval.config.models import AppConfig
from imgeval.monitoring import IngestMetrics, configure_logging


def clean_overrides(payload: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            nested = clean_overrides(value)
            if nested:
                cleaned[key] = nested
            continue
        if value is not None:
            cleaned[key] = value
    return cleaned


def build_global_overrides(args: Any) -> dict[str, Any]:
    overrides = {
        "store": {"root": getattr(args, "store_root", None)},
        "dataset": {"workflow": getattr(args, "workflow", None)},
        "monitoring": {
            "json_logs": (True if getattr(args, "json_logs", False) else None),
            "log_level": getattr(args, "log_level", None),
        },
    }
    return clean_overrides(overrides)


def prepare_command(args: Any, root: Path, name: str) -> tuple[AppConfig, IngestMetrics]:
    """Load config, install logging and set up metrics for one CLI command."""
    config = load_app_config(
        root=root,
        config_path=getattr(args, "config", None),
        cli_overrides=build_global_overrides(args),
    )
    configure_logging(
        level=config.monitoring.log_level,
        json_logs=config.monitoring.json_logs,
    )

    metrics = IngestMetrics()
    if config.monitoring.prometheus_enabled:
        metrics.enable_prometheus(
            config.monitoring.prometheus_host,
            config.monitoring.prometheus_port,
        )

    logging.getLogger(f"imgeval.{name}").info(
        "starting %s with config=%s",
        name,
        config.as_log_context(),
        extra={"context": {"command": name, **config.as_log_context()}},
    )
    return config, metrics
