from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from imgeval.dataset.matcher import FIRST_WINS, LAST_WINS, ImagePathMatcher


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"img")
    return path.resolve()


class ImagePathMatcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.first = _touch(self.root / "a" / "x.jpg")
        self.second = _touch(self.root / "b" / "x.jpg")
        self.other = _touch(self.root / "b" / "Cat.PNG")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_bare_name_collision_keeps_last_inserted(self) -> None:
        matcher = ImagePathMatcher(self.root, [self.first, self.second], collision_policy=LAST_WINS)

        self.assertEqual(matcher.lookup("x.jpg"), str(self.second))
        self.assertEqual(matcher.lookup("x"), str(self.second))
        self.assertIn("x.jpg", matcher.collisions)
        self.assertEqual(matcher.collisions["x.jpg"], [str(self.first), str(self.second)])

    def test_first_wins_policy_keeps_first_inserted(self) -> None:
        matcher = ImagePathMatcher(self.root, [self.first, self.second], collision_policy=FIRST_WINS)
        self.assertEqual(matcher.lookup("x.jpg"), str(self.first))

    def test_relative_paths_stay_unambiguous(self) -> None:
        matcher = ImagePathMatcher(self.root, [self.first, self.second])

        self.assertEqual(matcher.lookup("a/x.jpg"), str(self.first))
        self.assertEqual(matcher.lookup("B/X.JPG"), str(self.second))

    def test_root_relative_path_is_not_taken_over_by_bare_name(self) -> None:
        top = _touch(self.root / "y.jpg")
        nested = _touch(self.root / "z" / "y.jpg")
        matcher = ImagePathMatcher(self.root, [top, nested], collision_policy=LAST_WINS)

        self.assertEqual(matcher.lookup("y.jpg"), str(top))
        self.assertEqual(matcher.lookup("Y.JPG"), str(top))
        self.assertEqual(matcher.lookup("z/y.jpg"), str(nested))
        self.assertEqual(matcher.lookup("y"), str(nested))

    def test_lookup_is_case_insensitive_and_tolerates_foreign_prefixes(self) -> None:
        matcher = ImagePathMatcher(self.root, [self.other])

        self.assertEqual(matcher.lookup("cat.png"), str(self.other))
        self.assertEqual(matcher.lookup("C:\\exports\\cat.png"), str(self.other))
        self.assertEqual(matcher.lookup("/elsewhere/CAT.jpg"), str(self.other))
        self.assertIsNone(matcher.lookup("dog.png"))
        self.assertIsNone(matcher.lookup(""))

    def test_match_all_reports_unmatched(self) -> None:
        matcher = ImagePathMatcher(self.root, [self.first, self.other])
        report = matcher.match_all(["a/x.jpg", "missing.jpg"])

        self.assertEqual(report.matched_count, 1)
        self.assertEqual(report.unmatched, ["missing.jpg"])

    def test_unknown_policy_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ImagePathMatcher(self.root, [], collision_policy="random")


if __name__ == "__main__":
    unittest.main()
