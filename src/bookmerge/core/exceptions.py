"""Custom exception hierarchy for bookmerge."""

from typing import Any, ClassVar

from .types import ResolutionStatus


class BookmergeError(Exception):
    """Base exception for all bookmerge errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BookmergeError):
    """Input validation failed."""

    pass


class ProviderError(BookmergeError):
    """A provider call failed."""

    status: ClassVar[ResolutionStatus] = ResolutionStatus.ERROR
    retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        source: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.source = source
        self.status_code = status_code


class ProviderTimeoutError(ProviderError):
    """Provider did not answer within the configured timeout."""

    status = ResolutionStatus.TIMEOUT
    retryable = True


class UnauthorizedError(ProviderError):
    """Provider rejected the API credentials."""

    status = ResolutionStatus.UNAUTHORIZED


class RateLimitError(ProviderError):
    """Rate limit exceeded, either locally or reported by the provider."""

    status = ResolutionStatus.RATE_LIMITED
    retryable = True

    def __init__(
        self,
        message: str,
        source: str,
        retry_after: float | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, source, status_code, details)
        self.retry_after = retry_after


class NotFoundError(ProviderError):
    """Provider has no record for the request."""

    status = ResolutionStatus.NOT_FOUND


class TransientNetworkError(ProviderError):
    """Connection failure or 5xx answer that may succeed on retry."""

    status = ResolutionStatus.NETWORK_ERROR
    retryable = True


class MalformedResponseError(ProviderError):
    """Provider answered with a payload that could not be parsed."""

    status = ResolutionStatus.MALFORMED_RESPONSE


class ExhaustedRetriesError(ProviderError):
    """Every retry attempt failed; carries the last underlying error."""

    status = ResolutionStatus.EXHAUSTED_RETRIES

    def __init__(
        self,
        message: str,
        source: str,
        attempts: int,
        last_error: BaseException,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            source,
            status_code=getattr(last_error, "status_code", None),
            details=details,
        )
        self.attempts = attempts
        self.last_error = last_error


class CacheError(BookmergeError):
    """Cache operation failed."""

    pass
