"""Chunk schedulers for staging table population.

A scheduler decides how rows are cut into batches and how those batches
are handed to the insert callable:

- BatchScheduler: materializes the rows of one label, then inserts
  fixed-size batches in order.
- StreamingScheduler: pulls fixed-size chunks from any iterable and
  flushes each before reading the next, so the input is never held in
  memory at once.
- ParallelBatchScheduler: inserts up to ``max_parallel_batches`` batches
  concurrently, joining each wave before starting the next.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from itertools import islice
from typing import Callable, Iterable, Iterator, Protocol, TypeVar

from graph_loading.domain.value_objects import LoadPlan

T = TypeVar("T")

InsertBatch = Callable[[list], int]


@dataclass(frozen=True)
class BatchReport:
    """Outcome of one inserted batch.

    Attributes:
        number: 1-based batch number within the label
        inserted: Rows inserted by the batch
        total_batches: Number of batches for the label, if known
    """

    number: int
    inserted: int
    total_batches: int | None


BatchCallback = Callable[[BatchReport], None]


def chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive lists of at most ``size`` items."""
    iterator = iter(items)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


def _batch_count(expected: int | None, batch_size: int) -> int | None:
    if expected is None:
        return None
    return math.ceil(expected / batch_size)


class StagingScheduler(Protocol):
    """Strategy for feeding rows to a staging insert."""

    name: str

    def run(
        self,
        rows: Iterable,
        insert_batch: InsertBatch,
        on_batch: BatchCallback | None = None,
        expected: int | None = None,
    ) -> int:
        """Insert all rows and return the number inserted."""
        ...


class BatchScheduler:
    """Insert batches one after another, in input order."""

    name = "batch"

    def __init__(self, batch_size: int):
        self._batch_size = batch_size

    def run(
        self,
        rows: Iterable,
        insert_batch: InsertBatch,
        on_batch: BatchCallback | None = None,
        expected: int | None = None,
    ) -> int:
        materialized = list(rows)
        total_batches = math.ceil(len(materialized) / self._batch_size)
        inserted = 0
        for index in range(total_batches):
            start = index * self._batch_size
            count = insert_batch(materialized[start : start + self._batch_size])
            inserted += count
            if on_batch is not None:
                on_batch(BatchReport(index + 1, count, total_batches))
        return inserted


class StreamingScheduler:
    """Insert chunks as they are read from the input."""

    name = "streaming"

    def __init__(self, batch_size: int):
        self._batch_size = batch_size

    def run(
        self,
        rows: Iterable,
        insert_batch: InsertBatch,
        on_batch: BatchCallback | None = None,
        expected: int | None = None,
    ) -> int:
        total_batches = _batch_count(expected, self._batch_size)
        inserted = 0
        for number, chunk in enumerate(chunked(rows, self._batch_size), start=1):
            count = insert_batch(chunk)
            inserted += count
            if on_batch is not None:
                on_batch(BatchReport(number, count, total_batches))
        return inserted


class ParallelBatchScheduler:
    """Insert waves of batches concurrently.

    Order is preserved within a batch but not across batches of a wave.
    The first failure of a wave is re-raised once the whole wave finished.
    """

    name = "parallel"

    def __init__(self, batch_size: int, max_parallel_batches: int):
        self._batch_size = batch_size
        self._max_parallel_batches = max_parallel_batches

    def run(
        self,
        rows: Iterable,
        insert_batch: InsertBatch,
        on_batch: BatchCallback | None = None,
        expected: int | None = None,
    ) -> int:
        total_batches = _batch_count(expected, self._batch_size)
        batches = enumerate(chunked(rows, self._batch_size), start=1)
        inserted = 0

        with ThreadPoolExecutor(
            max_workers=self._max_parallel_batches,
            thread_name_prefix="agload-staging",
        ) as executor:
            while True:
                wave = list(islice(batches, self._max_parallel_batches))
                if not wave:
                    break

                futures = [
                    (number, executor.submit(insert_batch, batch))
                    for number, batch in wave
                ]
                wait([future for _, future in futures])

                for number, future in futures:
                    count = future.result()
                    inserted += count
                    if on_batch is not None:
                        on_batch(BatchReport(number, count, total_batches))

        return inserted


def select_scheduler(plan: LoadPlan, record_count: int) -> StagingScheduler:
    """Pick the scheduler for staging ``record_count`` records of one label.

    Streaming wins when enabled and the label exceeds the large dataset
    threshold; otherwise parallel inserts are used when enabled.
    """
    if plan.use_streaming and record_count > plan.large_dataset_threshold:
        return StreamingScheduler(plan.batch_size)
    if plan.parallel_inserts:
        return ParallelBatchScheduler(plan.batch_size, plan.max_parallel_batches)
    return BatchScheduler(plan.batch_size)
