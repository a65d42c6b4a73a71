"""Exceptions raised by pure domain operations."""


class ValidationError(ValueError):
    """Raised when an operation is rejected because of invalid input.

    Domain objects are immutable, so a rejected operation never leaves a
    partially-mutated project behind.
    """


class UnknownReferenceError(ValidationError):
    """Raised when an operation names an id that does not exist in the project."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"Unknown {kind}: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class SnapshotFormatError(ValueError):
    """Raised when a project snapshot cannot be trusted or decoded."""
