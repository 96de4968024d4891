"""Error taxonomy for storyloom.

Only the failures below are ever surfaced to a caller. Count mismatches and
structural violations are recovered internally and show up as reason codes
on results, never as exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from storyloom.models.domain import BatchResult


class StoryloomError(Exception):
    """Base class for all storyloom errors."""


class TransportError(StoryloomError):
    """The oracle could not be reached or answered with a failure.

    Attributes:
        cause: One of 'transport', 'non-2xx', 'empty-body'.
        status_code: HTTP status when the oracle answered, else None.
        detail: Short diagnostic text (truncated response body or error).
    """

    def __init__(self, cause: str, status_code: int | None = None, detail: str = ""):
        self.cause = cause
        self.status_code = status_code
        self.detail = detail
        message = f"Oracle request failed ({cause}"
        if status_code is not None:
            message += f", status={status_code}"
        message += ")"
        super().__init__(message)


class EnvelopeParseError(StoryloomError):
    """The oracle returned text that does not match the requested shape at all."""


class EmptyPayloadError(StoryloomError):
    """A unit finished without producing any usable payload."""


class ValidationInputError(StoryloomError):
    """Caller-supplied request violates the inbound contract."""

    def __init__(self, message: str, issues: list[dict[str, Any]] | None = None):
        self.issues = issues or []
        super().__init__(message)


class ConfigurationError(StoryloomError):
    """Required backend credential or configuration is absent."""


class BatchError(StoryloomError):
    """Batch-level fatal condition."""


class MissingReferenceError(BatchError):
    """The first view requires a reference input and none was supplied."""


class BatchFailedError(BatchError):
    """Every item of a batch was attempted and none succeeded."""

    def __init__(self, result: BatchResult):
        self.result = result
        super().__init__(f"Batch {result.run_id} produced no successful items")
