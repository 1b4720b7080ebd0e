"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Captures load-scoped metadata that should be included with all
    instrumentation events so that every event of one load can be
    correlated.

    Attributes:
        load_id: Unique token of the load invocation.
        graph_name: Name of the graph being loaded (if applicable).
        kind: Entity kind currently being processed ("vertex" or "edge").
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(load_id="3f2a...", graph_name="my_graph")
        probe = DefaultBatchLoadProbe().with_context(context)
    """

    load_id: str | None = None
    graph_name: str | None = None
    kind: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.load_id is not None:
            result["load_id"] = self.load_id
        if self.graph_name is not None:
            result["graph_name"] = self.graph_name
        if self.kind is not None:
            result["kind"] = self.kind
        result.update(self.extra)
        return result

    def with_kind(self, kind: str) -> ObservationContext:
        """Create a new context with the entity kind set."""
        return ObservationContext(
            load_id=self.load_id,
            graph_name=self.graph_name,
            kind=kind,
            extra=self.extra,
        )

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return ObservationContext(
            load_id=self.load_id,
            graph_name=self.graph_name,
            kind=self.kind,
            extra={**self.extra, **kwargs},
        )
