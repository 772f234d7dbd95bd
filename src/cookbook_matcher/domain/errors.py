"""Error taxonomy for job processing and matching."""


class CookbookMatcherError(Exception):
    """Base error carrying a machine-readable code."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ExtractionFailure(CookbookMatcherError):
    """The vision model rejected the image as the wrong kind of photo."""

    code = "EXTRACTION_FAILED"


class TransientIOFailure(CookbookMatcherError):
    """A network or storage call failed; the job may be retried."""

    code = "TRANSIENT_IO_ERROR"


class InvalidStateError(CookbookMatcherError):
    """A lifecycle transition was attempted from the wrong status."""

    code = "INVALID_STATUS"


class RetryExhaustedError(CookbookMatcherError):
    """The job already used every retry it is allowed."""

    code = "MAX_RETRIES_EXCEEDED"


class JobConflictError(CookbookMatcherError):
    """The job is being processed and cannot be modified."""

    code = "JOB_PROCESSING"


class NotFoundError(CookbookMatcherError):
    """The job or record does not exist for this user."""

    code = "NOT_FOUND"


class SelectionValidationError(CookbookMatcherError):
    """User input was rejected before any state changed."""

    code = "VALIDATION_ERROR"


class PreconditionError(CookbookMatcherError):
    """Inputs exist but are not ready for the requested operation."""

    code = "PRECONDITION_FAILED"


def error_code(exc: Exception) -> str:
    """Return the machine code recorded on a failed job."""
    if isinstance(exc, CookbookMatcherError):
        return exc.code
    return "UNKNOWN_ERROR"
