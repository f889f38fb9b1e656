"""Translate botocore failures into the backend error taxonomy.

Callers above the backend boundary only ever see :class:`BackendError`
subclasses; botocore exception types never leak into the workflow engine.
"""

from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from eventscale.core.errors import (
    AlreadyTerminatedError,
    BackendError,
    BackendUnavailableError,
    ExecutionNotFoundError,
    InvalidParametersError,
    InvalidTargetError,
    QuotaExceededError,
)

# Error codes that mean the same thing across SSM and Service Catalog.
_CODE_MAP: dict[str, type[BackendError]] = {
    # target does not exist
    "InvalidDocument": InvalidTargetError,
    "InvalidDocumentVersion": InvalidTargetError,
    "AutomationDefinitionNotFoundException": InvalidTargetError,
    "AutomationDefinitionVersionNotFoundException": InvalidTargetError,
    # bad parameters
    "InvalidAutomationExecutionParametersException": InvalidParametersError,
    "InvalidParametersException": InvalidParametersError,
    "ValidationException": InvalidParametersError,
    # quotas
    "AutomationExecutionLimitExceededException": QuotaExceededError,
    "LimitExceededException": QuotaExceededError,
    "ServiceQuotaExceededException": QuotaExceededError,
    # unknown execution
    "AutomationExecutionNotFoundException": ExecutionNotFoundError,
    "InvalidAutomationExecutionId": ExecutionNotFoundError,
    # already stopped
    "InvalidAutomationStatusUpdateException": AlreadyTerminatedError,
    "InvalidStateException": AlreadyTerminatedError,
    # transient (still failing after SDK retries)
    "Throttling": BackendUnavailableError,
    "ThrottlingException": BackendUnavailableError,
    "TooManyRequestsException": BackendUnavailableError,
    "RequestLimitExceeded": BackendUnavailableError,
    "InternalServerError": BackendUnavailableError,
    "InternalFailure": BackendUnavailableError,
    "ServiceUnavailable": BackendUnavailableError,
    "ServiceUnavailableException": BackendUnavailableError,
}

THROTTLING_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
})


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def attempts_made(error: ClientError) -> int:
    """Total attempts botocore made for the failed call (first try included)."""
    return error.response.get("ResponseMetadata", {}).get("RetryAttempts", 0) + 1


def is_throttling(error: ClientError, max_attempts: int | None = None) -> bool:
    """True for HTTP 429, a throttling code, or ``max_attempts`` reached."""
    metadata = error.response.get("ResponseMetadata", {})
    if metadata.get("HTTPStatusCode") == 429:
        return True
    if error_code(error) in THROTTLING_CODES:
        return True
    if max_attempts is not None and attempts_made(error) >= max_attempts:
        return True
    return False


def translate_client_error(
    error: Exception,
    *,
    backend: str,
    operation: str,
    not_found: type[BackendError] = ExecutionNotFoundError,
) -> BackendError:
    """Map a botocore exception to a :class:`BackendError` subclass.

    Args:
        error: ``ClientError`` or ``BotoCoreError`` raised by boto3
        backend: ``automation`` or ``catalog`` (recorded in the error context)
        operation: SDK operation name (recorded in the error context)
        not_found: class used for ``ResourceNotFoundException``, which means
            "bad target" on start but "unknown execution" on poll/terminate
    """
    if isinstance(error, ClientError):
        code = error_code(error)
        message = error.response.get("Error", {}).get("Message", str(error))
        if code == "ResourceNotFoundException":
            error_cls = not_found
        elif is_throttling(error):
            error_cls = BackendUnavailableError
        else:
            error_cls = _CODE_MAP.get(code, BackendError)
        translated = error_cls(f"{operation} failed ({code}): {message}", cause=error)
        translated.with_context(backend=backend, operation=operation, code=code)
        return translated

    if isinstance(error, BotoCoreError):
        translated = BackendUnavailableError(f"{operation} failed: {error}", cause=error)
        translated.with_context(backend=backend, operation=operation)
        return translated

    translated = BackendError(f"{operation} failed: {error}", cause=error)
    translated.with_context(backend=backend, operation=operation)
    return translated
