"""Progress reporting on the unified 0-100 scale."""

from __future__ import annotations

import time
from typing import Callable

from graph_loading.domain.value_objects import (
    EntityKind,
    ProgressEvent,
    ProgressPhase,
    ProgressSink,
)
from graph_loading.ports.observability import BatchLoadProbe


class ProgressReporter:
    """Maps kind-local progress onto a slice of the caller's scale.

    A reporter covers the band ``[start, end]``. Local percentages are
    scaled into the band with floor division and clamped so that the
    published sequence never decreases. A sink that raises is reported to
    the probe and otherwise ignored.
    """

    def __init__(
        self,
        sink: ProgressSink | None,
        kind: EntityKind,
        probe: BatchLoadProbe,
        start: int = 0,
        end: int = 100,
        started_at: float | None = None,
        floor: int = 0,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._sink = sink
        self._kind = kind
        self._probe = probe
        self._start = start
        self._end = end
        self._clock = clock
        self._started_at = clock() if started_at is None else started_at
        self._last = max(floor, 0)

    @property
    def last_percentage(self) -> int:
        """Highest percentage published so far."""
        return self._last

    def _scale(self, percentage: int) -> int:
        bounded = min(max(percentage, 0), 100)
        scaled = self._start + bounded * (self._end - self._start) // 100
        return max(scaled, self._last)

    def report(
        self,
        phase: ProgressPhase,
        percentage: int,
        current: int,
        total: int,
        *,
        entity_count: int | None = None,
        current_type: str | None = None,
        current_batch: int | None = None,
        total_batches: int | None = None,
    ) -> None:
        if self._sink is None:
            return

        scaled = self._scale(percentage)
        self._last = scaled
        elapsed_ms = (self._clock() - self._started_at) * 1000
        estimated_remaining_ms = None
        if 0 < scaled < 100:
            estimated_remaining_ms = elapsed_ms / scaled * (100 - scaled)

        event = ProgressEvent(
            phase=phase,
            current=current,
            total=total,
            percentage=scaled,
            vertex_count=entity_count if self._kind == EntityKind.VERTEX else None,
            edge_count=entity_count if self._kind == EntityKind.EDGE else None,
            current_type=current_type,
            current_batch=current_batch,
            total_batches=total_batches,
            elapsed_ms=elapsed_ms,
            estimated_remaining_ms=estimated_remaining_ms,
        )

        try:
            self._sink(event)
        except Exception as e:
            self._probe.progress_sink_failed(e)
