from __future__ import annotations

import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from imgeval.commands.context import prepare_command
from imgeval.results.scoring import (
    criterion_box_plots,
    criterion_statistics,
    statistical_summary,
)
from imgeval.results.store import ResultsStore


def _run_line(run: Any) -> dict[str, Any]:
    return {
        "id": run.id,
        "name": run.name,
        "model_name": run.model_name,
        "description": run.description,
        "status": run.status.value,
        "timestamp": run.timestamp.isoformat(),
        "average_score": run.average_score,
        "rating": run.rating.value,
    }


def run_results(args: Any, root: Path) -> int:
    try:
        config, metrics = prepare_command(args, root, "results")
        store = ResultsStore.from_config(config.store, metrics=metrics)

        if args.results_command == "import":
            jsonl = Path(args.jsonl).expanduser()
            if not jsonl.is_absolute():
                jsonl = (root / jsonl).resolve()
            run = store.import_jsonl(jsonl, args.name, base_directory=args.base_dir)
            payload = run.to_dict()
            payload["item_count"] = len(run.item_results or [])
            payload["folders"] = len(run.folder_statistics or {})
            print(json.dumps(payload, ensure_ascii=True, indent=2))
            return 0

        if args.results_command == "list":
            runs = store.search_runs(args.query) if args.query else store.list_runs()
            print(json.dumps([_run_line(run) for run in runs], ensure_ascii=True, indent=2))
            return 0

        if args.results_command == "show":
            run = store.load_detail(args.run_id) if args.detail else store.load_summary(args.run_id)
            print(json.dumps(run.to_dict(include_detail=args.detail), ensure_ascii=True, indent=2))
            return 0

        if args.results_command == "stats":
            run = store.load_detail(args.run_id)
            if args.criterion:
                summary = criterion_statistics(run, args.criterion)
            else:
                summary = statistical_summary(run)
            payload = {
                "run_id": run.id,
                "criterion": args.criterion,
                "summary": asdict(summary) if summary is not None else None,
                "box_plots": {
                    name: asdict(box) for name, box in criterion_box_plots(run).items()
                },
            }
            print(json.dumps(payload, ensure_ascii=True, indent=2))
            return 0 if summary is not None else 1

        if args.results_command == "delete":
            store.delete(args.run_id)
            print(json.dumps({"deleted": args.run_id}, ensure_ascii=True, indent=2))
            return 0

        raise RuntimeError(f"Unsupported results command: {args.results_command}")
    except Exception as exc:
        print(f"results command failed: {exc}", file=sys.stderr)
        return 2
