from __future__ import annotations

import argparse
from pathlib import Path

WORKFLOW_CHOICES = ["test_model", "evaluate_responses", "import_results"]


def _add_global_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to TOML/YAML/JSON config file")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--json-logs", action="store_true", help="Emit one JSON object per log record")
    parser.add_argument("--store-root", help="Directory holding persisted evaluation runs")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgeval",
        description="Image evaluation dataset validation, results import, and run comparison",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    dataset = subparsers.add_parser("dataset", help="Validate datasets and generate JSONL from folders")
    dataset_sub = dataset.add_subparsers(dest="dataset_command", required=True)

    ds_validate = dataset_sub.add_parser(
        "validate",
        help="Validate a JSONL file, an image folder, or a JSONL file against an image folder",
    )
    _add_global_args(ds_validate)
    ds_validate.add_argument("--jsonl", help="Dataset JSONL file")
    ds_validate.add_argument("--folder", help="Image folder to scan (without --jsonl)")
    ds_validate.add_argument("--images", help="Image folder matched against --jsonl references")
    ds_validate.add_argument("--workflow", choices=WORKFLOW_CHOICES, help="Workflow whose required fields apply")
    ds_validate.add_argument("--report", help="Write the full dataset report (JSON, or YAML for .yaml/.yml paths)")

    ds_generate = dataset_sub.add_parser("generate", help="Scan an image folder and write a dataset JSONL")
    _add_global_args(ds_generate)
    ds_generate.add_argument("--folder", required=True, help="Image folder to scan")
    ds_generate.add_argument("--output", required=True, help="Output JSONL path")
    ds_generate.add_argument(
        "--workflow",
        choices=WORKFLOW_CHOICES,
        help="Workflow the JSONL is written for (only test_model rows can be generated)",
    )

    results = subparsers.add_parser("results", help="Import, inspect, and delete evaluation runs")
    results_sub = results.add_subparsers(dest="results_command", required=True)

    rs_import = results_sub.add_parser("import", help="Import a results JSONL as a new run")
    _add_global_args(rs_import)
    rs_import.add_argument("--jsonl", required=True, help="Results JSONL file")
    rs_import.add_argument("--name", required=True, help="Run name")
    rs_import.add_argument("--base-dir", help="Directory image paths are made relative to")

    rs_list = results_sub.add_parser("list", help="List stored runs, newest first")
    _add_global_args(rs_list)
    rs_list.add_argument("--query", help="Filter by name, model, or dataset description")

    rs_show = results_sub.add_parser("show", help="Show one run")
    _add_global_args(rs_show)
    rs_show.add_argument("run_id")
    rs_show.add_argument("--detail", action="store_true", help="Include item results and folder statistics")

    rs_stats = results_sub.add_parser("stats", help="Descriptive statistics for one run")
    _add_global_args(rs_stats)
    rs_stats.add_argument("run_id")
    rs_stats.add_argument("--criterion", help="Summarize one criterion instead of item averages")

    rs_delete = results_sub.add_parser("delete", help="Delete a run and its detail")
    _add_global_args(rs_delete)
    rs_delete.add_argument("run_id")

    compare = subparsers.add_parser("compare", help="Compare 2-5 stored runs")
    _add_global_args(compare)
    compare.add_argument("run_ids", nargs="+", metavar="RUN_ID")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    root = Path.cwd()

    if args.command == "dataset":
        from imgeval.commands.dataset import run_dataset

        return run_dataset(args, root)
    if args.command == "results":
        from imgeval.commands.results import run_results

        return run_results(args, root)
    if args.command == "compare":
        from imgeval.commands.compare import run_compare

        return run_compare(args, root)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
