"""SQL identifier validation shared by settings and the loader.

These are pure functions with no dependencies on other modules.
"""

from __future__ import annotations

import re

# Only alphanumeric and underscore, must start with letter or underscore
# Max length 63 (PostgreSQL identifier limit)
_VALID_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
MAX_IDENTIFIER_LENGTH = 63


def validate_identifier(name: str, kind: str = "identifier") -> None:
    """Validate that a name is safe to splice into SQL/Cypher text.

    Args:
        name: The identifier to validate
        kind: Human-readable name of what is being validated, used in messages

    Raises:
        ValueError: If the name is empty, too long, or contains invalid characters
    """
    if not name:
        raise ValueError(f"Invalid {kind}: {kind} cannot be empty")

    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise ValueError(
            f"Invalid {kind} '{name}': exceeds maximum length of {MAX_IDENTIFIER_LENGTH} characters"
        )

    if not _VALID_IDENTIFIER_PATTERN.match(name):
        raise ValueError(
            f"Invalid {kind} '{name}': must start with letter or underscore, "
            "and contain only alphanumeric characters and underscores"
        )
