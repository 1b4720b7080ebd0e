"""Graph schema model and record validator.

The loader only consumes a narrow view of the schema: per label, which
property names are recognised and which are required. Labels absent from
the schema are not an error; they disable property filtering and required
checks for that label only.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from graph_loading.domain.exceptions import RecordValidationError
from graph_loading.domain.value_objects import (
    EDGE_ENDPOINT_KEYS,
    EDGE_FROM_KEY,
    EDGE_TO_KEY,
    VERTEX_ID_KEY,
    EntityKind,
    Record,
)


class PropertyType(str, Enum):
    """Type of a schema property."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    DATE = "date"
    DATETIME = "datetime"
    ANY = "any"


class PropertyDefinition(BaseModel):
    """Definition of a single property on a vertex or edge label."""

    model_config = ConfigDict(frozen=True)

    type: PropertyType = PropertyType.ANY
    description: str | None = None


class LabelSchema(BaseModel):
    """Recognised and required properties of one label.

    Attributes:
        properties: Property name to definition, in declaration order
        required: Names of properties that must be present on every record
    """

    model_config = ConfigDict(frozen=True)

    properties: dict[str, PropertyDefinition] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _required_are_declared(self) -> LabelSchema:
        undeclared = [name for name in self.required if name not in self.properties]
        if undeclared:
            raise ValueError(
                f"Required properties not declared in properties: {undeclared}"
            )
        return self


class GraphSchema(BaseModel):
    """Schema of a graph: label schemas per kind."""

    model_config = ConfigDict(frozen=True)

    vertices: dict[str, LabelSchema] = Field(default_factory=dict)
    edges: dict[str, LabelSchema] = Field(default_factory=dict)

    def get_vertex_schema(self, label: str) -> LabelSchema | None:
        return self.vertices.get(label)

    def get_edge_schema(self, label: str) -> LabelSchema | None:
        return self.edges.get(label)

    def get_schema(self, kind: EntityKind, label: str) -> LabelSchema | None:
        if kind == EntityKind.VERTEX:
            return self.get_vertex_schema(label)
        return self.get_edge_schema(label)


def _matches(value: Any, expected: PropertyType) -> bool:
    # bool is an int subclass; keep it out of the numeric types
    if expected == PropertyType.ANY:
        return True
    if expected == PropertyType.STRING:
        return isinstance(value, str)
    if expected == PropertyType.BOOLEAN:
        return isinstance(value, bool)
    if expected == PropertyType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == PropertyType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == PropertyType.ARRAY:
        return isinstance(value, (list, tuple))
    if expected == PropertyType.OBJECT:
        return isinstance(value, Mapping)
    if expected == PropertyType.DATETIME:
        if isinstance(value, datetime):
            return True
        return isinstance(value, str) and _parses(value, datetime.fromisoformat)
    if expected == PropertyType.DATE:
        if isinstance(value, date):
            return True
        return isinstance(value, str) and _parses(value, date.fromisoformat)
    return False


def _parses(value: str, parser: Any) -> bool:
    try:
        parser(value)
    except ValueError:
        return False
    return True


class SchemaValidator:
    """Validates records against a GraphSchema.

    Raises RecordValidationError on the first violation found. Properties
    whose value is None are treated as absent.
    """

    def __init__(self, schema: GraphSchema | Any):
        self._schema = schema

    def validate_vertex(self, label: str, record: Record, index: int | None = None) -> None:
        self._validate_properties(
            EntityKind.VERTEX,
            label,
            record,
            self._schema.get_vertex_schema(label),
            index,
        )

    def validate_edge(self, label: str, record: Record, index: int | None = None) -> None:
        for key in (EDGE_FROM_KEY, EDGE_TO_KEY):
            if record.get(key) in (None, ""):
                raise RecordValidationError(
                    f"Edge '{label}' is missing required endpoint property '{key}'",
                    kind=EntityKind.EDGE,
                    label=label,
                    property_name=key,
                    record_index=index,
                )
        self._validate_properties(
            EntityKind.EDGE,
            label,
            record,
            self._schema.get_edge_schema(label),
            index,
        )

    def _validate_properties(
        self,
        kind: EntityKind,
        label: str,
        record: Record,
        label_schema: LabelSchema | None,
        index: int | None,
    ) -> None:
        if label_schema is None:
            return

        for name in label_schema.required:
            if record.get(name) is None:
                raise RecordValidationError(
                    f"{kind.value.capitalize()} '{label}' is missing required property '{name}'",
                    kind=kind,
                    label=label,
                    property_name=name,
                    record_index=index,
                )

        for name, definition in label_schema.properties.items():
            value = record.get(name)
            if value is None:
                continue
            if not _matches(value, definition.type):
                raise RecordValidationError(
                    f"Property '{name}' of {kind.value} '{label}' must be of type "
                    f"{definition.type.value}, got {type(value).__name__}",
                    kind=kind,
                    label=label,
                    property_name=name,
                    record_index=index,
                )


def extract_properties(
    record: Record,
    label_schema: LabelSchema | None,
    kind: EntityKind,
) -> dict[str, Any]:
    """Select the properties of a record that are persisted.

    With a schema only recognised properties present on the record are kept;
    without one every key is kept. A vertex keeps its ``id`` either way,
    since edges find their endpoints by it. Edge endpoint keys are never
    properties.
    """
    if label_schema is not None:
        names = [name for name in label_schema.properties if name in record]
        if (
            kind == EntityKind.VERTEX
            and VERTEX_ID_KEY in record
            and VERTEX_ID_KEY not in names
        ):
            names.insert(0, VERTEX_ID_KEY)
    else:
        names = list(record)

    if kind == EntityKind.EDGE:
        names = [name for name in names if name not in EDGE_ENDPOINT_KEYS]

    return {name: to_graph_value(record[name]) for name in names}


def to_graph_value(value: Any) -> Any:
    """Coerce a Python value into a JSON and agtype compatible value.

    Dates become ISO-8601 strings, tuples and sets become lists, and
    mappings and sequences are converted recursively.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): to_graph_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_graph_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return [to_graph_value(item) for item in sorted(value, key=repr)]
    return str(value)
