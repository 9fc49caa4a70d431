"""Helpers for parsing and validating frame sequences."""

from __future__ import annotations

from pathlib import Path
import re

_TRAILING_INDEX = re.compile(r"(?P<idx>\d+)$")


def parse_frame_index(path: Path) -> int | None:
    """Extract the trailing integer of a filename stem, e.g. IMG_0042.jpg -> 42."""

    match = _TRAILING_INDEX.search(path.stem)
    if match is None:
        return None
    return int(match.group("idx"))


def find_missing_indices(indices: list[int]) -> list[int]:
    """Find missing indices in a sorted integer sequence."""

    if not indices:
        return []
    missing: list[int] = []
    prev = indices[0]
    for idx in indices[1:]:
        if idx > prev + 1:
            missing.extend(range(prev + 1, idx))
        prev = idx
    return missing
