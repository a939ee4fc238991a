from __future__ import annotations

import codecs
import json
from pathlib import Path
from typing import Any, Iterator


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=True, indent=2), encoding="utf-8")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def write_jsonl(path: Path, rows: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        for row in rows:
            handle.write(json.dumps(row, ensure_ascii=True) + "\n")


def iter_nonblank_lines(path: Path) -> Iterator[tuple[int, bytes]]:
    """Yield ``(line_number, stripped_line)`` for every non-blank line, 1-based.

    Lines stay undecoded so a bad byte only affects its own line. See :func:`decode_line`.
    """
    with path.open("rb") as handle:
        for line_number, raw in enumerate(handle, start=1):
            if line_number == 1 and raw.startswith(codecs.BOM_UTF8):
                raw = raw[len(codecs.BOM_UTF8):]
            line = raw.strip()
            if not line:
                continue
            yield line_number, line


def decode_line(raw: bytes) -> str:
    """Decode one line as UTF-8. Raises ``UnicodeDecodeError`` on invalid bytes."""
    return raw.decode("utf-8")


def write_report(path: Path, payload: dict[str, Any]) -> None:
    """Write a report as YAML for ``.yaml``/``.yml`` paths, JSON otherwise."""
    if path.suffix.lower() not in {".yaml", ".yml"}:
        write_json(path, payload)
        return
    try:
        import yaml
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "YAML reports require pyyaml. Install pyyaml or use a .json report path."
        ) from exc
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload, sort_keys=False, allow_unicode=False), encoding="utf-8")
