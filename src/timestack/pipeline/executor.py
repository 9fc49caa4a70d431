"""Compositing pipeline: normalize, reduce in parallel, finalize."""

from __future__ import annotations

from functools import partial
from itertools import chain, islice
import logging
import threading
import time
from typing import Any, Iterable, Iterator

from timestack.config.loader import validate_config
from timestack.config.schema import CompositeConfig
from timestack.errors import EmptyInputError
from timestack.observability.logging import get_logger, log_event
from timestack.pipeline.accumulator import Accumulator, AccumulatorState
from timestack.pipeline.frame import CompositeResult, Frame, to_sample_dtype
from timestack.pipeline.modes import Mode, make_accumulator
from timestack.pipeline.normalize import Normalizer, ordered
from timestack.pipeline.regions import split_rows
from timestack.workers.pool import CancelFlag, WorkItem, normalize_worker_count, run_tasks


_LOGGER = get_logger("timestack.executor")

SPATIAL = "spatial"
FRAME_BATCHES = "frame-batches"


def choose_strategy(
    mode: Mode,
    config: CompositeConfig,
    *,
    workers: int,
    frame_count: int | None,
) -> str:
    """Pick spatial-only or frame-batch parallelism for a run."""

    if not mode.order_independent:
        return SPATIAL
    if config.parallelism != "auto":
        return config.parallelism
    if frame_count is not None and frame_count < workers * config.frame_batch_size:
        return SPATIAL
    return FRAME_BATCHES


def _batched(frames: Iterable[Frame], size: int) -> Iterator[list[Frame]]:
    iterator = iter(frames)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


def _new_state(accumulator: Accumulator, reference: Frame) -> AccumulatorState:
    return accumulator.create_state(
        width=reference.width,
        height=reference.height,
        channel_count=reference.channel_count,
        sample_dtype=reference.dtype,
    )


def _reduce_region(
    accumulator: Accumulator,
    state: AccumulatorState,
    frames: list[Frame],
    cancel: CancelFlag,
) -> None:
    """Walk every frame, in order, over one region's rows."""

    rows = state.rows
    for position, frame in enumerate(frames):
        if cancel.cancelled:
            return
        accumulator.fold(state, frame.pixels[rows], position)


def _reduce_batch(
    accumulator: Accumulator,
    normalizer: Normalizer,
    target: AccumulatorState,
    lock: threading.Lock,
    timings: dict[str, float],
    batch: list[Frame],
    cancel: CancelFlag,
) -> None:
    """Normalize and reduce one frame batch, then merge it into `target`."""

    partial_state = _new_state(accumulator, normalizer.reference)
    normalize_sec = 0.0
    for frame in batch:
        if cancel.cancelled:
            return
        tick = time.perf_counter()
        frame = normalizer.normalize(frame)
        normalize_sec += time.perf_counter() - tick
        accumulator.fold(partial_state, frame.pixels, frame.index)
        partial_state.frame_count += 1
    with lock:
        timings["normalize_sec"] += normalize_sec
        if cancel.cancelled:
            return
        accumulator.merge(target, partial_state)


def _composite_spatial(
    *,
    mode: Mode,
    config: CompositeConfig,
    accumulator: Accumulator | None,
    normalizer: Normalizer,
    stream: Iterator[Frame],
    workers: int,
    cancel: CancelFlag,
) -> tuple[Accumulator, AccumulatorState, dict[str, Any]]:
    normalize_started = time.perf_counter()
    normalize_work: Iterator[WorkItem] = (
        (f"normalize frame {frame.index}", partial(normalizer.normalize, frame))
        for frame in stream
    )
    frames = [normalizer.reference, *run_tasks(normalize_work, max_workers=workers, cancel=cancel)]
    normalize_sec = time.perf_counter() - normalize_started

    if accumulator is None:
        accumulator = make_accumulator(
            mode,
            config,
            frame_count=len(frames),
            masks=[frame.mask for frame in frames],
        )
    state = _new_state(accumulator, normalizer.reference)
    regions = split_rows(normalizer.reference.height, workers)
    region_work: list[WorkItem] = [
        (
            f"rows {region.row_start}:{region.row_stop}",
            partial(
                _reduce_region,
                accumulator,
                state.region(region.row_start, region.row_stop),
                frames,
                cancel,
            ),
        )
        for region in regions
    ]
    run_tasks(region_work, max_workers=workers, cancel=cancel)
    state.frame_count = len(frames)
    return accumulator, state, {"units": len(regions), "normalize_sec": normalize_sec}


def _composite_frame_batches(
    *,
    accumulator: Accumulator,
    normalizer: Normalizer,
    stream: Iterator[Frame],
    batch_size: int,
    workers: int,
    cancel: CancelFlag,
) -> tuple[Accumulator, AccumulatorState, dict[str, Any]]:
    state = _new_state(accumulator, normalizer.reference)
    lock = threading.Lock()
    timings = {"normalize_sec": 0.0}
    batch_work: Iterator[WorkItem] = (
        (
            f"frames {batch[0].index}-{batch[-1].index}",
            partial(_reduce_batch, accumulator, normalizer, state, lock, timings, batch, cancel),
        )
        for batch in _batched(chain([normalizer.reference], stream), batch_size)
    )
    # One queued batch per worker keeps only a small window of frames alive.
    done = run_tasks(batch_work, max_workers=workers, cancel=cancel, max_pending=workers)
    return accumulator, state, {"units": len(done), **timings}


def composite(
    frames: Iterable[Frame],
    config: CompositeConfig | None = None,
) -> CompositeResult:
    """Composite an ordered frame sequence into one output buffer.

    `frames` may be any iterable; it is consumed once. Configuration is
    validated before the first frame is read.
    """

    config = config or CompositeConfig()
    mode = validate_config(config)
    workers = normalize_worker_count(config.thread_count)
    frame_count = len(frames) if hasattr(frames, "__len__") else None

    started = time.perf_counter()
    stream = ordered(frames)
    reference = next(stream, None)
    if reference is None:
        raise EmptyInputError()

    normalizer = Normalizer(reference, policy=config.resize_policy, resample=config.resample)
    accumulator = None if mode.needs_frame_count else make_accumulator(mode, config)
    if accumulator is not None:
        accumulator.check_layout(reference.channel_count)
    strategy = choose_strategy(mode, config, workers=workers, frame_count=frame_count)
    cancel = CancelFlag()

    log_event(
        _LOGGER,
        "composite_started",
        mode=mode.value,
        strategy=strategy,
        workers=workers,
        width=reference.width,
        height=reference.height,
        channels=reference.channel_count,
        dtype=str(reference.dtype),
    )

    try:
        if strategy == FRAME_BATCHES:
            if accumulator is None:
                raise ValueError(f"{mode.value} mode cannot be reduced in frame batches")
            accumulator, state, phases = _composite_frame_batches(
                accumulator=accumulator,
                normalizer=normalizer,
                stream=stream,
                batch_size=config.frame_batch_size,
                workers=workers,
                cancel=cancel,
            )
        else:
            accumulator, state, phases = _composite_spatial(
                mode=mode,
                config=config,
                accumulator=accumulator,
                normalizer=normalizer,
                stream=stream,
                workers=workers,
                cancel=cancel,
            )
        reduced = time.perf_counter()

        pixels = to_sample_dtype(accumulator.finalize(state), reference.dtype)
        masks = accumulator.mask_images(state) if config.slices.save_masks else None
        finished = time.perf_counter()
    except Exception as exc:
        cancel.cancel()
        log_event(
            _LOGGER,
            "composite_finished",
            level=logging.ERROR,
            status="FAILED",
            mode=mode.value,
            error=f"{type(exc).__name__}: {exc}",
        )
        raise

    stats: dict[str, Any] = {
        "strategy": strategy,
        "workers": workers,
        **phases,
        "reduce_sec": reduced - started,
        "finalize_sec": finished - reduced,
        "total_sec": finished - started,
    }
    log_event(
        _LOGGER,
        "composite_finished",
        status="SUCCEEDED",
        mode=mode.value,
        frame_count=state.frame_count,
        **stats,
    )
    return CompositeResult(
        pixels=pixels,
        mode=mode.value,
        frame_count=state.frame_count,
        time_positions=accumulator.time_positions(state),
        masks=masks,
        stats=stats,
    )
