"""Error types for ruletree with tree-location context."""

from __future__ import annotations

from typing import Any

# Structural error tags
MISSING_FIELD = "MISSING_FIELD"
SHAPE_MISMATCH = "SHAPE_MISMATCH"
ARRAY_LENGTH_MISMATCH = "ARRAY_LENGTH_MISMATCH"

# Semantic error tags
TYPE_MISMATCH = "TYPE_MISMATCH"
INVALID_OPERATOR = "INVALID_OPERATOR"
UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"

# Advisory tags (warnings unless strict)
NAMING_CONVENTION = "NAMING_CONVENTION"
UNUSED_BRANCH = "UNUSED_BRANCH"

STRUCTURAL_TYPES = frozenset({MISSING_FIELD, SHAPE_MISMATCH, ARRAY_LENGTH_MISMATCH})
SEMANTIC_TYPES = frozenset({TYPE_MISMATCH, INVALID_OPERATOR, UNRESOLVED_REFERENCE})
ADVISORY_TYPES = frozenset({NAMING_CONVENTION, UNUSED_BRANCH})


class RuleTreeError(Exception):
    """Base error with optional tree location."""

    def __init__(self, message: str, path: str | None = None):
        self.message = message
        self.path = path
        loc = f" (at {path})" if path else ""
        super().__init__(f"{message}{loc}")


class PathError(RuleTreeError):
    """Raised when a path key cannot be parsed strictly."""


class NamingContractError(RuleTreeError):
    """Raised when the naming engine is called with inconsistent inputs."""


class CatalogError(RuleTreeError):
    """Raised when a catalog file cannot be loaded."""


class ValidationError(RuleTreeError):
    """A single addressed problem found in a rule document.

    Returned by the validator, never raised by it.
    """

    def __init__(
        self,
        error_type: str,
        path: str,
        message: str,
        key: str | None = None,
        severity: str = "error",
        details: dict[str, Any] | None = None,
        line: int | None = None,
    ):
        self.error_type = error_type
        self.key = key
        # Line in the raw JSON text, when the caller supplied it
        self.line = line
        self.severity = severity
        self.details = details or {}
        super().__init__(message, path=path)

    @property
    def is_warning(self) -> bool:
        return self.severity == "warning"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.error_type,
            "path": self.path,
            "message": self.message,
        }
        if self.key:
            d["key"] = self.key
        if self.severity != "error":
            d["severity"] = self.severity
        if self.details:
            d["details"] = self.details
        if self.line is not None:
            d["line"] = self.line
        return d

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return (
            self.error_type == other.error_type
            and self.path == other.path
            and self.message == other.message
            and self.severity == other.severity
        )

    def __hash__(self) -> int:
        return hash((self.error_type, self.path, self.message, self.severity))

    def __repr__(self) -> str:
        return f"ValidationError({self.error_type}, {self.path!r}, {self.message!r})"


class DocumentError(RuleTreeError):
    """Raised when a rule document cannot be decoded into the node model."""
