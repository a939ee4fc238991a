from __future__ import annotations

import unittest

from imgeval.results.models import (
    EvaluationItemResult,
    EvaluationResult,
    FolderStats,
    ScoreRating,
)


class ResultModelTests(unittest.TestCase):
    def test_item_helpers(self) -> None:
        item = EvaluationItemResult(
            id="1",
            image_path="C:\\data\\pets\\cat.jpg",
            relative_path="pets\\indoor\\cat.jpg",
            criteria_scores={"Accuracy": 4.0, "Clarity": 3.0},
        )
        self.assertEqual(item.file_name, "cat.jpg")
        self.assertEqual(item.folder_path, "pets/indoor")
        self.assertEqual(item.average_score, 3.5)
        self.assertTrue(item.is_success)

        root_item = EvaluationItemResult(id="2", relative_path="cat.jpg", error="boom")
        self.assertEqual(root_item.folder_path, "/")
        self.assertFalse(root_item.is_success)
        self.assertEqual(root_item.average_score, 0.0)

    def test_folder_helpers(self) -> None:
        nested = FolderStats(folder_path="pets/indoor", average_scores={"Accuracy": 4.0, "Clarity": 2.0})
        self.assertEqual(nested.folder_name, "indoor")
        self.assertEqual(nested.parent_path, "pets")
        self.assertEqual(nested.overall_average_score, 3.0)
        self.assertTrue(nested.is_above_average(2.5))

        top = FolderStats(folder_path="pets")
        self.assertEqual(top.parent_path, "/")
        root = FolderStats(folder_path="/")
        self.assertEqual(root.folder_name, "Root")
        self.assertEqual(root.parent_path, "")

    def test_rating_thresholds(self) -> None:
        self.assertEqual(ScoreRating.from_score(4.5), ScoreRating.EXCELLENT)
        self.assertEqual(ScoreRating.from_score(3.75), ScoreRating.GOOD)
        self.assertEqual(ScoreRating.from_score(3.0), ScoreRating.FAIR)
        self.assertEqual(ScoreRating.from_score(2.9), ScoreRating.NEEDS_IMPROVEMENT)

    def test_summary_dict_round_trip(self) -> None:
        run = EvaluationResult(
            id="r1",
            name="Run",
            model_name="phi",
            dataset_name="pets",
            dataset_item_count=4,
            duration=12.5,
            criteria_scores={"Accuracy": 4.2, "Clarity": 3.8},
        )
        restored = EvaluationResult.from_summary_dict(run.summary_dict())

        self.assertEqual(restored.criteria_scores, run.criteria_scores)
        self.assertEqual(restored.timestamp, run.timestamp)
        self.assertEqual(restored.duration, 12.5)
        self.assertEqual(restored.average_score, 4.0)
        self.assertEqual(restored.description, "pets • 4 items")
        self.assertIsNone(restored.item_results)


if __name__ == "__main__":
    unittest.main()
