from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from imgeval.errors import ResultsImportError
from imgeval.monitoring.metrics import IngestMetrics
from imgeval.results.importer import import_results_jsonl
from imgeval.results.models import EvaluationStatus, ScoreRating
from imgeval.results.scoring import criterion_statistics, recompute_run_criteria, statistical_summary


def _write(path: Path, rows: list) -> Path:
    path.write_text(
        "\n".join(row if isinstance(row, str) else json.dumps(row) for row in rows) + "\n",
        encoding="utf-8",
    )
    return path


class ResultsImportTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_import_aggregates_items_and_folders(self) -> None:
        path = _write(
            self.root / "vision_run.jsonl",
            [
                {"image_path": "cats/a.jpg", "model": "phi-vision", "criteria_scores": {"Accuracy": 0.8, "Clarity": 4}},
                {"image_path": "cats/b.jpg", "criteria_scores": {"Accuracy": {"score": 3}, "Clarity": 2}},
                {"image_path": "dogs/c.jpg", "model": "other", "scores": {"Accuracy": 5}},
                {"image_path": "dogs/d.jpg", "error": "timeout", "criteria_scores": {"Accuracy": 0}},
                "not json",
                {"image_path": "e.jpg", "criteria_scores": {"Accuracy": 2}, "seed": 11},
            ],
        )
        metrics = IngestMetrics()
        run = import_results_jsonl(path, "Vision run", metrics=metrics)

        self.assertEqual(run.model_name, "phi-vision")
        self.assertEqual(run.dataset_name, "vision_run")
        self.assertEqual(run.dataset_item_count, 5)
        self.assertEqual(run.status, EvaluationStatus.IMPORTED)
        self.assertFalse(run.criteria_synthesized)
        # Accuracy over successful items: 4, 3, 5, 2
        self.assertEqual(run.criteria_scores, {"Accuracy": 3.5, "Clarity": 3.0})
        self.assertEqual(run.average_score, 3.2)
        self.assertEqual(run.rating, ScoreRating.FAIR)
        self.assertEqual(len(run.item_results), 5)
        self.assertEqual(run.item_results[4].custom_metadata["seed"].to_json(), 11)

        folders = run.folder_statistics
        self.assertEqual(sorted(folders), ["/", "cats", "dogs"])
        self.assertEqual(folders["cats"].item_count, 2)
        self.assertEqual(folders["cats"].average_scores, {"Accuracy": 3.5, "Clarity": 3.0})
        self.assertEqual(folders["dogs"].success_rate, 50.0)
        self.assertEqual(folders["dogs"].average_scores, {"Accuracy": 5.0})
        self.assertEqual(folders["/"].folder_name, "Root")

        snapshot = metrics.snapshot()
        self.assertEqual(snapshot.lines_read, 6)
        self.assertEqual(snapshot.lines_skipped, 1)
        self.assertEqual(snapshot.runs_imported, 1)

        self.assertEqual(recompute_run_criteria(run), run.criteria_scores)

    def test_statistics_cover_successful_items(self) -> None:
        path = _write(
            self.root / "run.jsonl",
            [
                {"image_path": "a.jpg", "criteria_scores": {"Accuracy": 4, "Clarity": 2}},
                {"image_path": "b.jpg", "criteria_scores": {"Accuracy": 2, "Clarity": 2}},
                {"image_path": "c.jpg", "error": "failed", "criteria_scores": {"Accuracy": 5}},
            ],
        )
        run = import_results_jsonl(path, "stats")

        summary = statistical_summary(run)
        self.assertEqual(summary.count, 2)
        self.assertEqual(summary.mean, 2.5)
        self.assertEqual(summary.standard_deviation, 0.71)

        accuracy = criterion_statistics(run, "Accuracy")
        self.assertEqual((accuracy.min, accuracy.max, accuracy.count), (2.0, 4.0, 2))
        self.assertIsNone(criterion_statistics(run, "Missing"))

    def test_placeholder_criteria_when_no_scores(self) -> None:
        path = _write(self.root / "empty.jsonl", [{"image_path": "a.jpg", "model": "m"}])

        run = import_results_jsonl(path, "placeholder")
        self.assertTrue(run.criteria_synthesized)
        self.assertEqual(run.criteria_scores, {"Accuracy": 2.5, "Completeness": 2.5, "Clarity": 2.5})

        with self.assertRaises(ResultsImportError):
            import_results_jsonl(path, "strict", synthesize_default_criteria=False)

    def test_missing_file_and_unknown_model(self) -> None:
        with self.assertRaises(ResultsImportError):
            import_results_jsonl(self.root / "absent.jsonl", "x")

        path = _write(self.root / "run.jsonl", [{"image_path": "a.jpg", "criteria_scores": {"Accuracy": 3}}])
        run = import_results_jsonl(path, "x")
        self.assertEqual(run.model_name, "Unknown Model")

    def test_undecodable_line_is_skipped(self) -> None:
        path = self.root / "run.jsonl"
        path.write_bytes(
            b"\xff\xfe bad\n"
            + json.dumps({"image_path": "a.jpg", "model": "m", "criteria_scores": {"Accuracy": 4}}).encode("utf-8")
            + b"\n"
        )
        metrics = IngestMetrics()
        run = import_results_jsonl(path, "x", metrics=metrics)

        self.assertEqual(len(run.item_results), 1)
        self.assertEqual(run.criteria_scores, {"Accuracy": 4.0})
        self.assertEqual(metrics.snapshot().lines_skipped, 1)

    def test_absolute_image_paths_become_relative_to_base_directory(self) -> None:
        image = self.root / "imgs" / "nested" / "a.jpg"
        path = _write(
            self.root / "run.jsonl",
            [{"image_path": str(image), "criteria_scores": {"Accuracy": 3}}],
        )
        run = import_results_jsonl(path, "x", base_directory=self.root / "imgs")

        item = run.item_results[0]
        self.assertEqual(item.relative_path, "nested/a.jpg")
        self.assertEqual(item.folder_path, "nested")
        self.assertEqual(item.file_name, "a.jpg")


if __name__ == "__main__":
    unittest.main()
