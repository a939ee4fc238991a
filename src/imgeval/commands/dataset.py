from __future__ import annotations

import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from imgeval.commands.context import prepare_command
from imgeval.dataset.export import write_dataset_jsonl
from imgeval.dataset.ingest import DatasetIngestor
from imgeval.utils.config_io import write_report


def _resolve(path_value: str | None, root: Path) -> Path | None:
    if not path_value:
        return None
    path = Path(path_value).expanduser()
    return path if path.is_absolute() else (root / path).resolve()


def run_dataset(args: Any, root: Path) -> int:
    try:
        config, metrics = prepare_command(args, root, "dataset")
        ingestor = DatasetIngestor.from_config(config, metrics=metrics)

        if args.dataset_command == "validate":
            jsonl = _resolve(args.jsonl, root)
            folder = _resolve(args.folder or args.images, root)
            if args.folder and args.images:
                raise ValueError("use --folder for a folder scan or --images with --jsonl, not both")
            if args.images and not jsonl:
                raise ValueError("--images requires --jsonl")

            dataset = ingestor.ingest(jsonl_path=jsonl, image_folder=folder)

            payload: dict[str, Any] = dataset.to_dict(include_entries=False)
            payload["metrics"] = asdict(metrics.snapshot())
            report_path = _resolve(args.report, root)
            if report_path is not None:
                write_report(report_path, dataset.to_dict(include_entries=True))
                payload["report_path"] = str(report_path)
            print(json.dumps(payload, ensure_ascii=True, indent=2))
            return 0 if dataset.is_valid else 1

        if args.dataset_command == "generate":
            folder = _resolve(args.folder, root)
            output = _resolve(args.output, root)
            dataset = ingestor.scan_folder(folder)
            if not dataset.is_valid:
                print(json.dumps(dataset.validation_result.to_dict(), ensure_ascii=True, indent=2))
                return 1
            written = write_dataset_jsonl(dataset, output, ingestor.workflow)
            payload = {
                "output": str(written),
                "rows": dataset.valid_entries,
                "total_images": dataset.total_entries,
                "exceeds_limit": dataset.exceeds_limit,
                "warnings": dataset.validation_result.warnings,
            }
            print(json.dumps(payload, ensure_ascii=True, indent=2))
            return 0

        raise RuntimeError(f"Unsupported dataset command: {args.dataset_command}")
    except Exception as exc:
        print(f"dataset command failed: {exc}", file=sys.stderr)
        return 2
