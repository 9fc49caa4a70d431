"""Atomic filesystem write helpers."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import json
import os
import tempfile
from typing import Any, Iterator


@contextmanager
def atomic_target(path: Path) -> Iterator[Path]:
    """Yield a temp path beside `path`; it replaces `path` only on success."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=path.suffix, dir=str(path.parent))
    os.close(fd)
    try:
        yield Path(tmp_name)
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)


def atomic_write_text(path: Path, content: str) -> None:
    """Write text atomically using a temp file + rename."""

    with atomic_target(path) as tmp_path:
        tmp_path.write_text(content, encoding="utf-8")


def atomic_write_json(path: Path, payload: Any, indent: int = 2) -> None:
    """Write JSON atomically."""

    atomic_write_text(path, json.dumps(payload, indent=indent, sort_keys=True) + "\n")


def read_json(path: Path) -> Any:
    """Read JSON from disk."""

    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
