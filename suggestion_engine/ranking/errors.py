from __future__ import annotations


class EngineError(Exception):
    """Base class for failures that are reported to the caller."""

    error_code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class InputError(EngineError):
    """A required parameter is missing or a parameter has an invalid value."""

    error_code = "INVALID_PARAMETER"
    status_code = 400


class NotFoundError(EngineError):
    """The customer or product named by the request does not exist."""

    error_code = "NOT_FOUND"
    status_code = 404


class SourceUnavailable(EngineError):
    """A candidate source could not produce results.

    Never surfaced to callers: the aggregator treats it as an empty
    contribution.
    """

    error_code = "SOURCE_UNAVAILABLE"
    status_code = 503
