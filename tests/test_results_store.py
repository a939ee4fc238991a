from __future__ import annotations

import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from imgeval.errors import RunNotFoundError
from imgeval.monitoring.metrics import IngestMetrics
from imgeval.results.models import EvaluationResult
from imgeval.results.scoring import aggregate_criteria
from imgeval.results.store import LocalFilesystemPersistence, ResultsStore


def _results_file(path: Path) -> Path:
    rows = [
        {"image_path": "set/a.jpg", "model": "phi", "criteria_scores": {"Accuracy": 4.4, "Clarity": 0.6}},
        {"image_path": "set/b.jpg", "criteria_scores": {"Accuracy": 3.1, "Clarity": 0.7}},
        {"image_path": "c.jpg", "criteria_scores": {"Accuracy": 2.9}, "labels": ["cat"]},
    ]
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n", encoding="utf-8")
    return path


class ResultsStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store_root = self.root / "store"
        self.metrics = IngestMetrics()
        self.store = ResultsStore(LocalFilesystemPersistence(self.store_root), metrics=self.metrics)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_summary_and_detail_round_trip(self) -> None:
        run = self.store.import_jsonl(_results_file(self.root / "run.jsonl"), "First")

        self.assertTrue((self.store_root / f"{run.id}.json").is_file())
        self.assertTrue((self.store_root / run.id / "items.json").is_file())
        self.assertTrue((self.store_root / run.id / "folder_stats.json").is_file())

        summary = self.store.load_summary(run.id)
        self.assertIsNone(summary.item_results)
        self.assertFalse(summary.has_detailed_results)
        self.assertEqual(summary.criteria_scores, run.criteria_scores)
        self.assertEqual(summary.timestamp, run.timestamp)

        detail = self.store.load_detail(run.id)
        self.assertEqual(len(detail.item_results), 3)
        self.assertEqual(aggregate_criteria(detail.item_results), summary.criteria_scores)
        self.assertEqual(detail.folder_statistics["set"].item_count, 2)
        self.assertEqual(detail.item_results[2].custom_metadata["labels"].to_json(), ["cat"])

    def test_missing_detail_does_not_break_summary_load(self) -> None:
        run = self.store.import_jsonl(_results_file(self.root / "run.jsonl"), "First")
        (self.store_root / run.id / "items.json").unlink()
        (self.store_root / run.id / "folder_stats.json").unlink()

        detail = self.store.load_detail(run.id)
        self.assertIsNone(detail.item_results)
        self.assertIsNone(detail.folder_statistics)
        self.assertEqual(detail.criteria_scores, run.criteria_scores)

    def test_corrupted_summary_is_skipped_when_listing(self) -> None:
        older = EvaluationResult(
            id="older",
            name="Older run",
            model_name="llava",
            dataset_name="pets",
            dataset_item_count=12,
            timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
            criteria_scores={"Accuracy": 3.0},
        )
        newer = EvaluationResult(
            id="newer",
            name="Newer run",
            model_name="phi",
            dataset_name="street",
            dataset_item_count=3,
            timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(days=1),
            criteria_scores={"Accuracy": 4.0},
        )
        self.store.save(older)
        self.store.save(newer)
        (self.store_root / "broken.json").write_text("{not json", encoding="utf-8")

        runs = self.store.list_runs()
        self.assertEqual([run.id for run in runs], ["newer", "older"])
        self.assertEqual(self.metrics.snapshot().corrupted_records, 1)

        self.assertEqual([run.id for run in self.store.search_runs("LLAVA")], ["older"])
        self.assertEqual([run.id for run in self.store.search_runs("street • 3 items")], ["newer"])
        self.assertEqual(len(self.store.search_runs("  ")), 2)

    def test_delete_removes_summary_and_detail(self) -> None:
        run = self.store.import_jsonl(_results_file(self.root / "run.jsonl"), "First")
        self.store.delete(run.id)

        self.assertFalse((self.store_root / f"{run.id}.json").exists())
        self.assertFalse((self.store_root / run.id).exists())
        with self.assertRaises(RunNotFoundError):
            self.store.load_summary(run.id)
        with self.assertRaises(RunNotFoundError):
            self.store.delete(run.id)

    def test_ids_outside_the_store_root_are_rejected(self) -> None:
        keep = EvaluationResult(
            id="keep", name="Keep", model_name="phi", dataset_name="pets", criteria_scores={"Accuracy": 3.0}
        )
        self.store.save(keep)
        (self.root / "outside.json").write_text(json.dumps(keep.summary_dict()), encoding="utf-8")

        for run_id in ("", ".", "..", "../outside", "keep/..", "a\\b"):
            with self.subTest(run_id=run_id):
                with self.assertRaises(RunNotFoundError):
                    self.store.delete(run_id)
        with self.assertRaises(RunNotFoundError):
            self.store.load_summary("../outside")

        self.assertTrue(self.store_root.is_dir())
        self.assertTrue((self.root / "outside.json").is_file())
        self.assertEqual([run.id for run in self.store.list_runs()], ["keep"])

    def test_corrupted_item_detail_keeps_summary(self) -> None:
        run = self.store.import_jsonl(_results_file(self.root / "run.jsonl"), "First")
        (self.store_root / run.id / "items.json").write_text("{not json", encoding="utf-8")

        detail = self.store.load_detail(run.id)
        self.assertIsNone(detail.item_results)
        self.assertEqual(detail.folder_statistics["set"].item_count, 2)
        self.assertEqual(detail.criteria_scores, run.criteria_scores)
        self.assertEqual(self.metrics.snapshot().corrupted_records, 1)


if __name__ == "__main__":
    unittest.main()
