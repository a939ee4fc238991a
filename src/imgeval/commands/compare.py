from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from imgeval.analysis.compare import compare_runs
from imgeval.commands.context import prepare_command
from imgeval.results.store import ResultsStore


def run_compare(args: Any, root: Path) -> int:
    try:
        config, metrics = prepare_command(args, root, "compare")
        store = ResultsStore.from_config(config.store, metrics=metrics)
        runs = [store.load_summary(run_id) for run_id in args.run_ids]
        report = compare_runs(runs)
        print(json.dumps(report.to_dict(), ensure_ascii=True, indent=2))
        return 0
    except Exception as exc:
        print(f"compare command failed: {exc}", file=sys.stderr)
        return 2
