"""Scan input paths and build an ordered frame manifest."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Mapping

from timestack.errors import InvalidConfigError
from timestack.ingest.sequence import find_missing_indices, parse_frame_index
from timestack.pipeline.frame import Frame
from timestack.storage.images import MASK_STEM_SUFFIX, load_frame


IMAGE_SUFFIXES = frozenset({".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp"})


@dataclass(slots=True)
class FrameRef:
    frame_idx: int
    path: Path
    mask: Path | None = None


@dataclass(slots=True)
class ScanResult:
    frames: list[FrameRef]
    missing_indices: list[int]

    @property
    def frame_count(self) -> int:
        return len(self.frames)


def _sort_key(path: Path) -> tuple[int, int, str]:
    idx = parse_frame_index(path)
    if idx is None:
        return (1, 0, path.name)
    return (0, idx, path.name)


def scan_directory(root: Path, glob: str = "*") -> list[Path]:
    """Return image files in `root` ordered by their trailing frame number."""

    if not root.exists():
        raise FileNotFoundError(f"Input path does not exist: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Input path must be a directory: {root}")
    found = [
        child
        for child in root.glob(glob)
        if child.is_file()
        and child.suffix.lower() in IMAGE_SUFFIXES
        and not child.stem.endswith(MASK_STEM_SUFFIX)
    ]
    return sorted(found, key=_sort_key)


def scan_inputs(
    inputs: Iterable[Path],
    glob: str = "*",
    masks: Mapping[Path, Path] | None = None,
) -> ScanResult:
    """Expand directories and keep explicit files in the order given.

    Frames are numbered by their position in the resulting sequence; gaps in
    the numbers embedded in file names are reported as `missing_indices`.
    `masks` pairs image paths with their mask files.
    """

    paths: list[Path] = []
    for item in inputs:
        if item.is_dir():
            paths.extend(scan_directory(item, glob=glob))
        elif item.exists():
            paths.append(item)
        else:
            raise FileNotFoundError(f"Input file does not exist: {item}")

    masks = dict(masks or {})
    unmatched = set(masks) - set(paths)
    if unmatched:
        names = ", ".join(sorted(str(path) for path in unmatched))
        raise InvalidConfigError(f"Masks given for images that are not inputs: {names}")

    embedded = [parse_frame_index(path) for path in paths]
    numbered = sorted(idx for idx in embedded if idx is not None)
    return ScanResult(
        frames=[
            FrameRef(frame_idx=pos, path=path, mask=masks.get(path))
            for pos, path in enumerate(paths)
        ],
        missing_indices=find_missing_indices(numbered),
    )


def iter_frames(scan: ScanResult) -> Iterator[Frame]:
    """Decode frames lazily so only the working window stays in memory."""

    for ref in scan.frames:
        yield load_frame(ref.path, ref.frame_idx, mask_path=ref.mask)
