from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from imgeval.dataset.ingest import DatasetIngestor
from imgeval.errors import DatasetFileError
from imgeval.pipeline.offload import BackgroundTasks


class BackgroundTasksTests(unittest.TestCase):
    def test_scan_runs_off_thread_and_returns_one_result(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "a.jpg").write_bytes(b"img")

            with BackgroundTasks(max_workers=1) as tasks:
                future = tasks.submit(DatasetIngestor().scan_folder, root)
                dataset = future.result(timeout=10)

            self.assertTrue(future.done())
            self.assertEqual(dataset.valid_entries, 1)

    def test_failure_is_delivered_through_the_future(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = Path(tmpdir) / "absent"
            with BackgroundTasks(max_workers=1) as tasks:
                future = tasks.submit(DatasetIngestor().scan_folder, missing)
                with self.assertRaises(DatasetFileError):
                    future.result(timeout=10)


if __name__ == "__main__":
    unittest.main()
