"""Structured store errors, distinguishable by kind."""


class StoreError(Exception):
    """Base class for every error raised by the stores.

    Attributes:
        kind: Stable machine-readable error kind
        status_code: Suggested transport status for this kind
    """

    kind = "store_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(StoreError):
    """Artifact name or version does not exist."""

    kind = "not_found"
    status_code = 404


class UnavailableError(StoreError):
    """Backing medium failed; callers may retry."""

    kind = "unavailable"
    status_code = 503


class InvalidArgumentError(StoreError, ValueError):
    """Malformed identity key, empty artifact name or bad configuration."""

    kind = "invalid_argument"
    status_code = 400
