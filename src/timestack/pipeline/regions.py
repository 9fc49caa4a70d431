"""Split the output buffer into row bands for parallel workers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Region:
    """A contiguous band of image rows owned by one worker."""

    index: int
    row_start: int
    row_stop: int

    @property
    def rows(self) -> slice:
        return slice(self.row_start, self.row_stop)

    @property
    def row_count(self) -> int:
        return self.row_stop - self.row_start


def split_rows(height: int, parts: int) -> list[Region]:
    """Split `height` rows into at most `parts` non-empty, ordered bands."""

    if height <= 0:
        raise ValueError(f"height must be > 0, got {height}")
    parts = max(1, min(int(parts), height))
    band = height / parts

    regions: list[Region] = []
    for idx in range(parts):
        start = int(band * idx)
        stop = height if idx == parts - 1 else int(band * (idx + 1))
        if stop > start:
            regions.append(Region(index=len(regions), row_start=start, row_stop=stop))
    return regions
