from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from imgeval.dataset.types import DatasetConfiguration, WorkflowMode
from imgeval.utils.config_io import write_jsonl


def _portable_path(resolved: str, anchor: Path) -> str:
    try:
        return Path(resolved).relative_to(anchor).as_posix()
    except ValueError:
        return resolved


def dataset_rows(
    dataset: DatasetConfiguration,
    anchor: Path,
    workflow: WorkflowMode | str | None = None,
) -> list[dict[str, Any]]:
    mode = WorkflowMode(workflow or dataset.workflow)
    if mode is not WorkflowMode.TEST_MODEL:
        raise ValueError(
            f"Generated datasets only support the test_model workflow, not {mode.value}"
        )
    return [
        {"image_path": _portable_path(entry.resolved_image_path, anchor)}
        for entry in dataset.entries
    ]


def write_dataset_jsonl(
    dataset: DatasetConfiguration,
    path: str | Path,
    workflow: WorkflowMode | str | None = None,
) -> Path:
    """Write the dataset entries as a JSONL file that ``ingest_jsonl`` can re-read.

    Images below the output directory are written relative to it; anything else
    keeps its absolute path. Only ``test_model`` datasets can be generated, since the
    other workflows need prompt, response or score fields a folder scan cannot supply.
    """
    output = Path(path).expanduser().resolve()
    rows = dataset_rows(dataset, output.parent, workflow)
    write_jsonl(output, rows)
    logging.getLogger("imgeval.ingest").info(
        "dataset jsonl written path=%s rows=%d", output, len(rows)
    )
    return output
