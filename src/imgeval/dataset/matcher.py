"""Resolve loosely written image references against files found on disk.

Lookups are case-insensitive. Paths relative to the base directory (OS-native and
forward-slash forms) live in their own table and always resolve to the one file they
name. Bare filenames and filenames without extension can collide when two folders
hold files with the same name; the collision policy decides which file keeps such a
key and every overwrite is recorded in ``collisions``.
"""
from __future__ import annotations

import logging
import ntpath
import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

LAST_WINS = "last_wins"
FIRST_WINS = "first_wins"


@dataclass
class MatchReport:
    matched: dict[str, str] = field(default_factory=dict)
    unmatched: list[str] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return len(self.matched)


def _split_name(reference: str) -> str:
    # Accept both separators regardless of host OS.
    return ntpath.basename(posixpath.basename(reference))


def _native(reference: str) -> str:
    return reference.replace("\\", os.sep).replace("/", os.sep)


class ImagePathMatcher:
    def __init__(
        self,
        base_directory: str | Path,
        image_paths: Iterable[str | Path],
        collision_policy: str = LAST_WINS,
    ) -> None:
        if collision_policy not in {LAST_WINS, FIRST_WINS}:
            raise ValueError(f"Unsupported collision policy: {collision_policy}")
        self._base = Path(base_directory).resolve()
        self._policy = collision_policy
        self._relative: dict[str, str] = {}
        self._names: dict[str, str] = {}
        self._collisions: dict[str, list[str]] = {}
        self._logger = logging.getLogger("imgeval.matcher")
        self._count = 0
        for image_path in image_paths:
            self._add(Path(image_path))

    def _put(self, key: str, absolute: str) -> None:
        key = key.lower()
        existing = self._names.get(key)
        if existing is None:
            self._names[key] = absolute
            return
        if existing == absolute:
            return
        self._collisions.setdefault(key, [existing]).append(absolute)
        if self._policy == LAST_WINS:
            self._names[key] = absolute

    def _add(self, image_path: Path) -> None:
        absolute_path = image_path if image_path.is_absolute() else self._base / image_path
        absolute = str(absolute_path.resolve())
        try:
            relative = os.path.relpath(absolute, self._base)
        except ValueError:
            # Different drive on Windows; only bare-name keys apply.
            relative = None

        self._put(absolute_path.name, absolute)
        self._put(absolute_path.stem, absolute)
        if relative is not None:
            self._relative[_native(relative).lower()] = absolute
            self._relative[relative.replace("\\", "/").lower()] = absolute
        self._count += 1

    @property
    def base_directory(self) -> Path:
        return self._base

    @property
    def collision_policy(self) -> str:
        return self._policy

    @property
    def collisions(self) -> dict[str, list[str]]:
        """Keys that more than one file produced, with candidates in insertion order."""
        return {key: list(paths) for key, paths in self._collisions.items()}

    def __len__(self) -> int:
        return self._count

    def keys(self) -> list[str]:
        return sorted(set(self._relative) | set(self._names))

    def lookup(self, reference: str) -> str | None:
        """Return the absolute path for ``reference`` or ``None`` when unmatched."""
        if not reference:
            return None
        raw = reference.strip()
        name = _split_name(raw)
        stem = os.path.splitext(name)[0]
        candidates = (
            (self._relative, raw),
            (self._names, raw),
            (self._names, name),
            (self._names, stem),
            (self._relative, _native(raw)),
        )
        for table, candidate in candidates:
            hit = table.get(candidate.lower())
            if hit is not None:
                return hit
        return None

    def match_all(self, references: Iterable[str]) -> MatchReport:
        report = MatchReport()
        for reference in references:
            hit = self.lookup(reference)
            if hit is None:
                report.unmatched.append(reference)
            else:
                report.matched[reference] = hit
        if report.unmatched:
            self._logger.warning(
                "unmatched image references count=%d base=%s",
                len(report.unmatched),
                self._base,
            )
        return report
