"""Exceptions for idempotency guard."""


class IdempotencyError(Exception):
    """Base exception for idempotency-related errors."""


class DuplicateExecutionError(IdempotencyError):
    """Raise when a duplicate execution is detected and on_duplicate='raise'."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Duplicate execution detected for key: {key}")


class SerializationError(IdempotencyError):
    """Raise when call arguments cannot be canonicalized into a key."""

    def __init__(self, value: object, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot serialize arguments: {reason}")


class StoreUnavailableError(IdempotencyError):
    """Raise when the durable store is unreachable or fails an operation."""

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        self.reason = reason
        super().__init__(f"{backend} store unavailable: {reason}")


class CommitError(StoreUnavailableError):
    """Raise when an operation ran but its key could not be recorded.

    The operation's return value is kept on ``result``; the operation is
    not recorded, so a later duplicate call will not be detected.
    """

    def __init__(self, key: str, result: object, backend: str, reason: str) -> None:
        self.key = key
        self.result = result
        super().__init__(backend, f"commit of key {key} failed: {reason}")
