from __future__ import annotations


class EditorError(Exception):
    pass


class SchemaResolutionError(EditorError):
    """A schema node that cannot be classified; rendered as an opaque leaf."""


class DecodeError(EditorError):
    def __init__(self, message: str, warnings: list[str] | None = None) -> None:
        super().__init__(message)
        self.warnings = list(warnings or [])


class ValidationError(EditorError):
    def __init__(self, reason: str, position: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.position = position


class IdentityConflictError(EditorError):
    def __init__(self, collection: str, identity: str) -> None:
        super().__init__(f"{collection}: identity already exists: {identity}")
        self.collection = collection
        self.identity = identity


class RecordNotFoundError(EditorError, KeyError):
    def __init__(self, collection: str, identity: str) -> None:
        super().__init__(f"{collection}: record not found: {identity}")
        self.collection = collection
        self.identity = identity

    def __str__(self) -> str:
        return self.args[0]


class SessionStateError(EditorError):
    """Operation not allowed in the session's current state."""
