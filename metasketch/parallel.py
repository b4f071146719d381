"""Thread-pool helpers for processing items in chunks or batches."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterator, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_CHUNK_SIZE = 1000


class ParallelError(Exception):
    """Raised when parallel processing is misconfigured or cannot proceed."""


def _default_threads() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class ParallelConfig:
    """How many threads to use, how to chunk the work and whether to tolerate failures."""

    threads: int = field(default_factory=_default_threads)
    chunk_size: int = DEFAULT_CHUNK_SIZE
    continue_on_error: bool = False

    @property
    def worker_count(self) -> int:
        """Number of worker threads; zero or less means one per CPU."""
        return self.threads if self.threads > 0 else _default_threads()


def _chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _run_chunked(
    pool: ThreadPoolExecutor,
    items: Sequence[T],
    processor: Callable[[T], U],
    config: ParallelConfig,
) -> list[U]:
    futures: list[Future[U]] = []
    for chunk in _chunks(items, config.chunk_size):
        futures.extend(pool.submit(processor, item) for item in chunk)

    results: list[U] = []
    first_error: BaseException | None = None
    for future in futures:
        error = future.exception()
        if error is None:
            results.append(future.result())
            continue
        if config.continue_on_error:
            logger.error("Error during parallel processing: %r", error)
        elif first_error is None:
            logger.error("Processing error, stopping due to continue_on_error=false")
            first_error = error

    if first_error is not None:
        raise first_error
    return results


def parallel_process(
    items: Sequence[T],
    processor: Callable[[T], U],
    config: ParallelConfig | None = None,
) -> list[U]:
    """Apply ``processor`` to every item on a thread pool, keeping input order.

    Without ``continue_on_error`` the first failing item's exception (in input
    order) is raised; with it, failures are logged and left out of the result.
    Raises ParallelError if the chunk size is not positive.
    """
    config = config or ParallelConfig()
    if config.chunk_size <= 0:
        raise ParallelError(f"Invalid chunk size: {config.chunk_size}")
    items = list(items)
    with ThreadPoolExecutor(max_workers=config.worker_count) as pool:
        return _run_chunked(pool, items, processor, config)


def process_in_batches(
    items: Sequence[T],
    processor: Callable[[list[T]], Sequence[U]],
    batch_size: int,
) -> list[U]:
    """Split items into batches, run ``processor`` on each in its own thread and concatenate.

    Results keep batch order; the exception of the first failing batch is raised.
    Raises ParallelError if the batch size is not positive.
    """
    if batch_size <= 0:
        raise ParallelError(f"Invalid chunk size: {batch_size}")
    items = list(items)
    batches = [list(batch) for batch in _chunks(items, batch_size)]
    logger.debug(
        "Processing %d items in %d batches of size %d", len(items), len(batches), batch_size
    )
    if not batches:
        return []

    with ThreadPoolExecutor(max_workers=len(batches)) as pool:
        futures = [pool.submit(processor, batch) for batch in batches]
        results: list[U] = []
        for future in futures:
            results.extend(future.result())
    return results


class ParallelExecutor:
    """Runs work on a reusable thread pool with a fixed configuration."""

    def __init__(self, config: ParallelConfig | None = None) -> None:
        self.config = config or ParallelConfig()
        self._pool = ThreadPoolExecutor(max_workers=self.config.worker_count)

    def execute(self, items: Sequence[T], processor: Callable[[T], U]) -> list[U]:
        """Process items as ``parallel_process`` does, on this executor's pool."""
        if self.config.chunk_size <= 0:
            raise ParallelError(f"Invalid chunk size: {self.config.chunk_size}")
        return _run_chunked(self._pool, list(items), processor, self.config)

    def close(self) -> None:
        """Shut the pool down, waiting for running work."""
        self._pool.shutdown(wait=True)

    def __enter__(self) -> ParallelExecutor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()