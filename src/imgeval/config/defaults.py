from __future__ import annotations


DEFAULT_CONFIG: dict = {
    "limits": {
        "max_dataset_size": 1000,
        "max_file_size_mb": 100,
    },
    "dataset": {
        "workflow": "test_model",
        "image_extensions": [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"],
    },
    "matcher": {
        "collision_policy": "last_wins",
    },
    "store": {
        "root": "artifacts/evaluations",
        "synthesize_default_criteria": True,
        "default_criteria": {
            "Accuracy": 2.5,
            "Completeness": 2.5,
            "Clarity": 2.5,
        },
    },
    "monitoring": {
        "json_logs": False,
        "log_level": "INFO",
        "prometheus_enabled": False,
        "prometheus_host": "0.0.0.0",
        "prometheus_port": 9109,
    },
}
