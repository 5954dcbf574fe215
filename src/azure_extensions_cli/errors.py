"""Error types raised by the extensions client."""

from __future__ import annotations


class AzureExtensionsError(RuntimeError):
    """Base error."""


class InvalidArgumentError(AzureExtensionsError):
    """A required argument was missing or empty."""


class InvalidCertificateError(AzureExtensionsError):
    """Management certificate could not be parsed."""


class TransportError(AzureExtensionsError):
    """Management endpoint could not be reached."""


class ManagementRequestError(TransportError):
    """Management endpoint returned an HTTP error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.detail = detail


class MalformedResponseError(AzureExtensionsError):
    """Response payload did not have the expected shape."""


class MissingOperationIDError(MalformedResponseError):
    """Response did not carry an operation tracking id."""


class OperationError(AzureExtensionsError):
    """An asynchronous operation did not succeed."""

    def __init__(self, message: str, *, operation_id: str) -> None:
        super().__init__(message)
        self.operation_id = operation_id


class OperationFailedError(OperationError):
    """The server reported the operation as failed."""

    def __init__(
        self,
        message: str,
        *,
        operation_id: str,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> None:
        super().__init__(message, operation_id=operation_id)
        self.error_code = error_code
        self.error_message = error_message


class OperationQueryFailedError(OperationError):
    """Status queries kept failing until the retry bound was exceeded."""


class OperationTimedOutError(OperationError):
    """Timed out waiting for the operation to finish."""


class OperationCancelledError(OperationError):
    """Waiting was cancelled before the operation finished."""
