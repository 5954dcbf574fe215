"""Value types returned by the extensions client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from azure_extensions_cli.errors import (
    OperationCancelledError,
    OperationFailedError,
    OperationQueryFailedError,
    OperationTimedOutError,
)

OperationStatusValue = Literal["InProgress", "Succeeded", "Failed"]
OperationState = Literal["Succeeded", "Failed", "TimedOut", "Cancelled"]

OPERATION_STATUSES: tuple[OperationStatusValue, ...] = ("InProgress", "Succeeded", "Failed")
TERMINAL_STATUSES: tuple[OperationStatusValue, ...] = ("Succeeded", "Failed")

REASON_OPERATION_FAILED = "OperationFailed"
REASON_QUERY_FAILED = "OperationQueryFailed"


@dataclass(frozen=True)
class Credentials:
    subscription_id: str
    certificate: x509.Certificate = field(repr=False)
    private_key: PrivateKeyTypes = field(repr=False)

    @property
    def thumbprint(self) -> str:
        return self.certificate.fingerprint(hashes.SHA1()).hex().upper()


@dataclass(frozen=True)
class ExtensionVersionInfo:
    namespace: str
    name: str
    version: str
    replication_completed: bool
    regions: str = ""

    @property
    def region_list(self) -> list[str]:
        return [item.strip() for item in self.regions.split(",") if item.strip()]


@dataclass(frozen=True)
class ReplicationStatusEntry:
    location: str
    status: str


@dataclass(frozen=True)
class OperationStatus:
    operation_id: str
    status: OperationStatusValue
    http_status_code: int | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class OperationResult:
    """Terminal outcome of waiting on an operation.

    ``reason`` is only set for ``Failed``: ``OperationFailed`` when the server
    reported the failure, ``OperationQueryFailed`` when status queries kept
    failing and the poller gave up.
    """

    operation_id: str
    state: OperationState
    queries: int
    elapsed: float
    reason: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    cause: BaseException | None = field(default=None, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.state == "Succeeded"

    def raise_for_state(self) -> None:
        if self.state == "Succeeded":
            return
        op = self.operation_id
        if self.state == "Failed" and self.reason == REASON_QUERY_FAILED:
            raise OperationQueryFailedError(
                f"could not query status of operation {op} after {self.queries} attempts: "
                f"{self.cause}",
                operation_id=op,
            ) from self.cause
        if self.state == "Failed":
            detail = ": ".join(part for part in (self.error_code, self.error_message) if part)
            raise OperationFailedError(
                f"operation {op} failed" + (f": {detail}" if detail else ""),
                operation_id=op,
                error_code=self.error_code,
                error_message=self.error_message,
            )
        if self.state == "TimedOut":
            raise OperationTimedOutError(
                f"timed out waiting for operation {op} after {self.elapsed:.1f}s",
                operation_id=op,
            )
        raise OperationCancelledError(f"waiting for operation {op} was cancelled", operation_id=op)
