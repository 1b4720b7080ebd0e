"""Unit tests for the GraphLoader orchestrator.

The AGE pipeline is replaced by a fake that returns preset outcomes and
emits kind-local progress, so these tests cover sequencing, transaction
ownership and result aggregation only.
"""

import json
from unittest.mock import MagicMock

import pytest

from graph_loading.application import GraphLoader, LoadOptions
from graph_loading.domain import (
    BatchLoadError,
    EndpointIntegrityError,
    EntityKind,
    ErrorCategory,
    KindOutcome,
    LoadError,
    PipelineState,
    ProgressPhase,
    SchemaValidator,
)
from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.settings import LoaderSettings

DATA = {
    "vertices": {
        "Person": [{"id": "1", "name": "Alice"}, {"id": "2", "name": "Bob"}],
        "Company": [{"id": "10", "name": "Acme"}],
    },
    "edges": {"WORKS_AT": [{"from": "1", "to": "10"}, {"from": "2", "to": "10"}]},
}


class FakePipeline:
    def __init__(self, factory, kwargs):
        self._factory = factory
        self.kwargs = kwargs

    def run(self, kind, records_by_label, progress=None):
        self._factory.runs.append((kind, dict(records_by_label)))
        if kind in self._factory.errors:
            raise self._factory.errors[kind]
        if progress is not None:
            for phase, percentage in (
                (ProgressPhase.VALIDATION, 33),
                (ProgressPhase.STORING, 66),
                (ProgressPhase.CREATING, 100),
            ):
                progress.report(phase, percentage, 1, 1, entity_count=1)
        if kind in self._factory.outcomes:
            return self._factory.outcomes[kind]
        return KindOutcome(
            kind=kind,
            state=PipelineState.SUCCEEDED,
            count=sum(len(records) for records in records_by_label.values()),
            types=list(records_by_label),
        )


class FakePipelineFactory:
    """Pipeline factory recording what it was asked to create."""

    def __init__(self):
        self.outcomes = {}
        self.errors = {}
        self.created = []
        self.runs = []

    def create(self, **kwargs):
        self.created.append(kwargs)
        return FakePipeline(self, kwargs)


def _failed(kind, category=ErrorCategory.MUTATION, message="boom", details=None):
    return KindOutcome(
        kind=kind,
        state=PipelineState.FAILED,
        errors=[LoadError(category=category, message=message, details=details or {})],
        warnings=["kind warning"],
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.graph_name = "test_graph"
    return client


@pytest.fixture
def transaction(client):
    return client.begin_transaction.return_value


@pytest.fixture
def factory():
    return FakePipelineFactory()


@pytest.fixture
def probe():
    probe = MagicMock()
    probe.with_context.return_value = probe
    return probe


@pytest.fixture
def loader(client, person_schema, factory, probe):
    return GraphLoader(
        client=client,
        schema=person_schema,
        pipeline_factory=factory,
        probe=probe,
        settings=LoaderSettings(),
    )


class TestLoadGraphData:
    """Tests for vertex-then-edge sequencing and result aggregation."""

    def test_loads_vertices_then_edges(self, loader, factory):
        result = loader.load_graph_data(DATA)

        assert result.success is True
        assert [kind for kind, _ in factory.runs] == [EntityKind.VERTEX, EntityKind.EDGE]
        assert result.vertex_count == 3
        assert result.edge_count == 2
        assert result.vertex_types == ["Person", "Company"]
        assert result.edge_types == ["WORKS_AT"]
        assert result.errors is None
        assert result.warnings is None
        assert result.duration_ms >= 0

    def test_empty_input_succeeds_without_transaction(self, loader, client, factory):
        result = loader.load_graph_data({})

        assert result.success is True
        assert result.vertex_count == 0
        assert result.errors is None
        client.begin_transaction.assert_not_called()
        assert factory.runs == []

    def test_labels_with_zero_records_do_not_open_transaction(self, loader, client):
        result = loader.load_graph_data({"vertices": {"Person": []}})

        assert result.success is True
        client.begin_transaction.assert_not_called()

    def test_single_kind_is_not_attempted_for_empty_kind(self, loader, factory):
        loader.load_graph_data({"vertices": DATA["vertices"], "edges": {}})

        assert [kind for kind, _ in factory.runs] == [EntityKind.VERTEX]

    def test_pipeline_receives_plan_and_default_validator(self, loader, factory):
        loader.load_graph_data(DATA)

        created = factory.created[0]
        assert created["plan"].graph_name == "test_graph"
        assert created["plan"].batch_size == 1000
        assert isinstance(created["validator"], SchemaValidator)

    def test_each_call_gets_a_fresh_token(self, loader, factory):
        loader.load_graph_data(DATA)
        loader.load_graph_data(DATA)

        tokens = {created["token"] for created in factory.created}
        assert len(tokens) == 2
        assert all(len(token) == 32 for token in tokens)

    def test_probe_is_bound_to_load_context(self, loader, probe, factory):
        loader.load_graph_data(DATA)

        contexts = [c.args[0] for c in probe.with_context.call_args_list]
        assert contexts[0].load_id == factory.created[0]["token"]
        assert contexts[0].graph_name == "test_graph"
        assert [context.kind for context in contexts[1:]] == ["vertex", "edge"]
        probe.load_started.assert_called_once_with(vertex_count=3, edge_count=2)
        probe.load_completed.assert_called_once()


class TestTransactionOwnership:
    """Tests for commit and rollback responsibility."""

    def test_owned_transaction_is_committed(self, loader, client, transaction):
        loader.load_graph_data(DATA)

        client.begin_transaction.assert_called_once_with("test_graph")
        transaction.commit.assert_called_once()
        transaction.rollback.assert_not_called()

    def test_caller_transaction_is_never_finalized(self, loader, client, factory):
        caller_tx = MagicMock()
        caller_tx.graph_name = "caller_graph"

        result = loader.load_graph_data(DATA, LoadOptions(transaction=caller_tx))

        assert result.success is True
        client.begin_transaction.assert_not_called()
        caller_tx.commit.assert_not_called()
        caller_tx.rollback.assert_not_called()
        assert factory.created[0]["transaction"] is caller_tx
        assert factory.created[0]["plan"].graph_name == "caller_graph"

    def test_caller_transaction_untouched_on_failure(self, loader, factory):
        caller_tx = MagicMock()
        caller_tx.graph_name = "caller_graph"
        factory.outcomes[EntityKind.VERTEX] = _failed(EntityKind.VERTEX)

        result = loader.load_graph_data(DATA, LoadOptions(transaction=caller_tx))

        assert result.success is False
        caller_tx.rollback.assert_not_called()

    def test_begin_failure_is_a_transaction_error(self, loader, client, factory):
        client.begin_transaction.side_effect = DatabaseConnectionError("Not connected")

        result = loader.load_graph_data(DATA)

        assert result.success is False
        [error] = result.errors
        assert error.category == ErrorCategory.TRANSACTION
        assert error.message == "Failed to begin transaction: Not connected"
        assert factory.runs == []

    def test_commit_failure_rolls_back(self, loader, transaction):
        transaction.commit.side_effect = RuntimeError("serialization failure")

        result = loader.load_graph_data(DATA)

        assert result.success is False
        assert result.errors[-1].category == ErrorCategory.TRANSACTION
        assert result.errors[-1].message == "Failed to commit transaction"
        transaction.rollback.assert_called_once()

    def test_rollback_error_becomes_warning(self, loader, factory, transaction):
        factory.outcomes[EntityKind.VERTEX] = _failed(EntityKind.VERTEX)
        transaction.rollback.side_effect = RuntimeError("connection lost")

        result = loader.load_graph_data(DATA)

        assert result.success is False
        assert result.warnings == ["kind warning", "Rollback error: connection lost"]


class TestFailures:
    """Tests for kind failures and their effect on the result."""

    def test_vertex_failure_stops_edges(self, loader, factory, transaction):
        factory.outcomes[EntityKind.VERTEX] = _failed(EntityKind.VERTEX)

        result = loader.load_graph_data(DATA)

        assert result.success is False
        assert [kind for kind, _ in factory.runs] == [EntityKind.VERTEX]
        assert result.vertex_count == 0
        assert result.edge_count == 0
        assert result.errors[0].message == "boom"
        transaction.rollback.assert_called_once()
        transaction.commit.assert_not_called()

    def test_edge_failure_keeps_vertex_count(self, loader, factory, transaction):
        factory.outcomes[EntityKind.EDGE] = _failed(
            EntityKind.EDGE, ErrorCategory.ENDPOINT_INTEGRITY
        )

        result = loader.load_graph_data(DATA)

        assert result.success is False
        assert result.vertex_count == 3
        assert result.edge_count == 0
        assert result.edge_types == []
        transaction.rollback.assert_called_once()

    def test_unexpected_exception_becomes_error(self, loader, factory, transaction):
        factory.errors[EntityKind.VERTEX] = RuntimeError("kaboom")

        result = loader.load_graph_data(DATA)

        assert result.success is False
        [error] = result.errors
        assert error.category == ErrorCategory.UNEXPECTED
        assert error.message == "Unexpected error during graph load: kaboom"
        transaction.rollback.assert_called_once()

    def test_failed_load_notifies_probe(self, loader, factory, probe):
        factory.outcomes[EntityKind.VERTEX] = _failed(EntityKind.VERTEX)

        loader.load_graph_data(DATA)

        probe.load_failed.assert_called_once()
        probe.load_completed.assert_not_called()


class TestProgress:
    """Tests for progress on the 0-100 scale."""

    def test_progress_is_monotonic_and_ends_at_100(self, loader):
        events = []

        loader.load_graph_data(DATA, LoadOptions(on_progress=events.append))

        percentages = [event.percentage for event in events]
        assert percentages == [16, 33, 50, 66, 83, 100]
        assert percentages == sorted(percentages)
        assert events[2].vertex_count == 1
        assert events[3].edge_count == 1

    def test_single_kind_uses_full_scale(self, loader):
        events = []

        loader.load_edges(DATA["edges"], LoadOptions(on_progress=events.append))

        assert [event.percentage for event in events] == [33, 66, 100]

    def test_raising_callback_does_not_fail_load(self, loader, probe):
        def sink(event):
            raise RuntimeError("ui gone")

        result = loader.load_graph_data(DATA, LoadOptions(on_progress=sink))

        assert result.success is True
        assert probe.progress_sink_failed.call_count == 6


class TestPayloads:
    """Tests for payload coercion and the convenience entry points."""

    def test_non_mapping_payload(self, loader, client):
        result = loader.load_graph_data(["not", "a", "mapping"])

        assert result.success is False
        assert result.errors[0].category == ErrorCategory.PAYLOAD
        client.begin_transaction.assert_not_called()

    def test_malformed_records(self, loader):
        result = loader.load_graph_data({"vertices": {"Person": "Alice"}})

        assert result.success is False
        assert result.errors[0].category == ErrorCategory.PAYLOAD
        assert result.errors[0].message.startswith("Invalid graph data")

    def test_load_vertices_only(self, loader, factory):
        result = loader.load_vertices(DATA["vertices"])

        assert result.success is True
        assert [kind for kind, _ in factory.runs] == [EntityKind.VERTEX]
        assert result.edge_count == 0

    def test_load_edges_only(self, loader, factory):
        result = loader.load_edges(DATA["edges"])

        assert [kind for kind, _ in factory.runs] == [EntityKind.EDGE]
        assert result.edge_count == 2


class TestLoadFromFile:
    """Tests for loading JSON files."""

    def test_loads_file(self, loader, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps(DATA), encoding="utf-8")

        result = loader.load_from_file(path)

        assert result.success is True
        assert result.vertex_count == 3

    def test_missing_file(self, loader, tmp_path):
        path = tmp_path / "missing.json"

        result = loader.load_from_file(path)

        assert result.success is False
        assert result.errors[0].message == f"File not found: {path}"

    def test_invalid_json(self, loader, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        result = loader.load_from_file(str(path))

        assert result.errors[0].category == ErrorCategory.PAYLOAD
        assert result.errors[0].message.startswith(f"Failed to parse JSON from {path}")

    def test_json_must_be_object(self, loader, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")

        result = loader.load_from_file(path)

        assert result.errors[0].message == (
            f"Graph data file {path} must contain a JSON object"
        )


class TestThrowingAdapters:
    """Tests for the *_or_raise variants."""

    def test_success_returns_result(self, loader):
        result = loader.load_graph_data_or_raise(DATA)

        assert result.success is True

    def test_failure_raises_matching_exception(self, loader, factory):
        factory.outcomes[EntityKind.EDGE] = _failed(
            EntityKind.EDGE,
            ErrorCategory.ENDPOINT_INTEGRITY,
            message="Edge endpoints validation failed",
            details={"missing_ids": ["3"]},
        )

        with pytest.raises(EndpointIntegrityError) as exc_info:
            loader.load_graph_data_or_raise(DATA)

        assert exc_info.value.missing_ids == ["3"]
        assert exc_info.value.result.vertex_count == 3

    def test_file_variant_raises_payload_error(self, loader, tmp_path):
        with pytest.raises(BatchLoadError, match="File not found"):
            loader.load_from_file_or_raise(tmp_path / "missing.json")

    def test_vertices_and_edges_variants(self, loader):
        assert loader.load_vertices_or_raise(DATA["vertices"]).vertex_count == 3
        assert loader.load_edges_or_raise(DATA["edges"]).edge_count == 2
