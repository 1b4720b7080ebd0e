"""Utility functions for AGE bulk loading operations.

These are pure functions with no dependencies on other bulk loading components.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

# Label name validation regex: only alphanumeric, underscore, must start with letter or underscore
# Max length 63 (PostgreSQL identifier limit)
_VALID_LABEL_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_MAX_LABEL_LENGTH = 63


def validate_label_name(label: str) -> None:
    """Validate that a label name is safe for use in SQL/Cypher queries.

    Args:
        label: The label name to validate

    Raises:
        ValueError: If the label is empty, too long, or contains invalid characters
    """
    if not label:
        raise ValueError("Invalid label name: label cannot be empty")

    if len(label) > _MAX_LABEL_LENGTH:
        raise ValueError(
            f"Invalid label name '{label}': exceeds maximum length of {_MAX_LABEL_LENGTH} characters"
        )

    if not _VALID_LABEL_PATTERN.match(label):
        raise ValueError(
            f"Invalid label name '{label}': must start with letter or underscore, "
            "and contain only alphanumeric characters and underscores"
        )


def quote_cypher_identifier(name: str) -> str:
    """Back-quote a property or label name for Cypher.

    Embedded back-quotes are doubled.
    """
    return "`" + name.replace("`", "``") + "`"


def parse_agtype_count(rows: Sequence[tuple[Any, ...]]) -> int:
    """Read the integer returned by a ``RETURN count(x)`` Cypher statement.

    Without the AGE type adapter psycopg2 returns agtype values as text,
    so both ints and their textual form are accepted.

    Raises:
        ValueError: If the first column is not an integer
    """
    if not rows:
        return 0
    value = rows[0][0]
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    if text.endswith("::integer"):
        text = text[: -len("::integer")]
    return int(text)
