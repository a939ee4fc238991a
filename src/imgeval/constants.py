from __future__ import annotations

MAX_DATASET_SIZE = 1000
MAX_FILE_SIZE_BYTES = 100 * 1024 * 1024

IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}
)

# Scores are stored on a 0-5 scale.
SCORE_MIN = 0.0
SCORE_MAX = 5.0

MIN_COMPARE_RUNS = 2
MAX_COMPARE_RUNS = 5

UNKNOWN_MODEL = "Unknown Model"

DEFAULT_PLACEHOLDER_CRITERIA: dict[str, float] = {
    "Accuracy": 2.5,
    "Completeness": 2.5,
    "Clarity": 2.5,
}
