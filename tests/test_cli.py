from __future__ import annotations

import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

import yaml

from imgeval.cli import main


def _invoke(argv: list[str]) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(argv)
    return code, out.getvalue(), err.getvalue()


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.store = self.root / "store"
        images = self.root / "images"
        images.mkdir()
        (images / "a.jpg").write_bytes(b"img")
        (images / "b.png").write_bytes(b"img")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _import(self, name: str, scores: dict[str, float]) -> str:
        path = self.root / f"{name}.jsonl"
        path.write_text(
            json.dumps({"image_path": "images/a.jpg", "model": name, "criteria_scores": scores}) + "\n",
            encoding="utf-8",
        )
        code, out, _ = _invoke(
            ["results", "import", "--jsonl", str(path), "--name", name, "--store-root", str(self.store)]
        )
        self.assertEqual(code, 0)
        return json.loads(out)["id"]

    def test_dataset_validate_and_generate(self) -> None:
        code, out, _ = _invoke(["dataset", "validate", "--folder", str(self.root / "images")])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["valid_entries"], 2)

        output = self.root / "images" / "dataset.jsonl"
        code, out, _ = _invoke(
            ["dataset", "generate", "--folder", str(self.root / "images"), "--output", str(output)]
        )
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["rows"], 2)

        report = self.root / "report.json"
        code, out, _ = _invoke(["dataset", "validate", "--jsonl", str(output), "--report", str(report)])
        self.assertEqual(code, 0)
        self.assertEqual(len(json.loads(report.read_text(encoding="utf-8"))["entries"]), 2)

        yaml_report = self.root / "report.yaml"
        code, _, _ = _invoke(["dataset", "validate", "--jsonl", str(output), "--report", str(yaml_report)])
        self.assertEqual(code, 0)
        loaded = yaml.safe_load(yaml_report.read_text(encoding="utf-8"))
        self.assertEqual(loaded["valid_entries"], 2)

        code, _, err = _invoke(
            [
                "dataset", "generate", "--folder", str(self.root / "images"),
                "--output", str(self.root / "responses.jsonl"), "--workflow", "evaluate_responses",
            ]
        )
        self.assertEqual(code, 2)
        self.assertIn("only support the test_model workflow", err)

    def test_invalid_dataset_returns_one(self) -> None:
        bad = self.root / "bad.jsonl"
        bad.write_text('{"image_path": "images/missing.jpg"}\n', encoding="utf-8")

        code, out, _ = _invoke(["dataset", "validate", "--jsonl", str(bad)])
        self.assertEqual(code, 1)
        self.assertFalse(json.loads(out)["validation"]["is_valid"])

    def test_missing_dataset_file_returns_two(self) -> None:
        code, _, err = _invoke(["dataset", "validate", "--jsonl", str(self.root / "absent.jsonl")])
        self.assertEqual(code, 2)
        self.assertIn("dataset command failed", err)

    def test_results_and_compare_flow(self) -> None:
        first = self._import("alpha", {"Accuracy": 4, "Clarity": 3})
        second = self._import("beta", {"Accuracy": 2, "Clarity": 5})

        code, out, _ = _invoke(["results", "list", "--store-root", str(self.store)])
        self.assertEqual(code, 0)
        self.assertEqual(len(json.loads(out)), 2)

        code, out, _ = _invoke(["results", "show", first, "--detail", "--store-root", str(self.store)])
        self.assertEqual(code, 0)
        self.assertEqual(len(json.loads(out)["item_results"]), 1)

        code, out, _ = _invoke(
            ["results", "stats", first, "--criterion", "Accuracy", "--store-root", str(self.store)]
        )
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["summary"]["mean"], 4.0)

        code, out, _ = _invoke(["compare", first, second, "--store-root", str(self.store)])
        self.assertEqual(code, 0)
        report = json.loads(out)
        self.assertEqual(report["rankings"][0]["run_id"], first)
        self.assertEqual(report["win_counts"], {first: 1, second: 1})

        code, _, err = _invoke(["compare", first, "--store-root", str(self.store)])
        self.assertEqual(code, 2)
        self.assertIn("compare command failed", err)

        code, _, err = _invoke(["results", "delete", "..", "--store-root", str(self.store)])
        self.assertEqual(code, 2)
        self.assertIn("Invalid run id", err)
        self.assertEqual(len(json.loads(_invoke(["results", "list", "--store-root", str(self.store)])[1])), 2)

        code, _, _ = _invoke(["results", "delete", second, "--store-root", str(self.store)])
        self.assertEqual(code, 0)
        code, _, err = _invoke(["results", "show", second, "--store-root", str(self.store)])
        self.assertEqual(code, 2)
        self.assertIn("results command failed", err)


if __name__ == "__main__":
    unittest.main()
