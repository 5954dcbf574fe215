"""Typed client for the Service Management extension publishing endpoints."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Mapping, Protocol
from urllib.parse import quote

from azure_extensions_cli.credentials import load_credentials
from azure_extensions_cli.envelope import (
    decode_extension_versions,
    decode_operation_status,
    decode_replication_statuses,
    encode_body,
    extract_operation_id,
)
from azure_extensions_cli.errors import InvalidArgumentError
from azure_extensions_cli.models import (
    ExtensionVersionInfo,
    OperationResult,
    OperationStatus,
    ReplicationStatusEntry,
)
from azure_extensions_cli.poller import (
    DEFAULT_MAX_QUERY_FAILURES,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
    CancelSignal,
    OperationPoller,
)
from azure_extensions_cli.transport import (
    DEFAULT_API_VERSION,
    DEFAULT_MANAGEMENT_URL,
    DEFAULT_REQUEST_TIMEOUT,
    ManagementTransport,
    TransportResponse,
)


class Transport(Protocol):
    def request(
        self,
        method: str,
        path: str,
        *,
        body: bytes | None = None,
        params: Mapping[str, str] | None = None,
    ) -> TransportResponse: ...

    def close(self) -> None: ...


def _require(**values: str) -> None:
    for name, value in values.items():
        if not isinstance(value, str) or not value.strip():
            raise InvalidArgumentError(f"{name} must not be empty")


def _segment(value: str) -> str:
    return quote(value, safe="")


@dataclass
class ExtensionsClient:
    transport: Transport
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    max_query_failures: int = DEFAULT_MAX_QUERY_FAILURES
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        self._poller = OperationPoller(
            status_source=lambda operation_id: self.get_operation_status(operation_id),
            interval=self.poll_interval,
            timeout=self.poll_timeout,
            max_query_failures=self.max_query_failures,
            clock=self.clock,
            sleep=self.sleep,
        )

    def list_versions(self) -> list[ExtensionVersionInfo]:
        response = self.transport.request("GET", "services/publisherextensions")
        return decode_extension_versions(response.body)

    def get_replication_status(
        self, namespace: str, name: str, version: str
    ) -> list[ReplicationStatusEntry]:
        _require(namespace=namespace, name=name, version=version)
        path = (
            f"services/extensions/{_segment(namespace)}/{_segment(name)}/"
            f"{_segment(version)}/replicationstatus"
        )
        response = self.transport.request("GET", path)
        return decode_replication_statuses(response.body)

    def update_extension(self, manifest_xml: bytes | str) -> str:
        """Submit a manifest; publishing and unpublishing differ only in its content."""
        body = encode_body(manifest_xml)
        response = self.transport.request(
            "PUT",
            "services/extensions",
            body=body,
            params={"action": "update"},
        )
        return extract_operation_id(response.headers)

    def delete_extension(self, namespace: str, name: str, version: str) -> str:
        _require(namespace=namespace, name=name, version=version)
        path = f"services/extensions/{_segment(namespace)}/{_segment(name)}/{_segment(version)}"
        response = self.transport.request("DELETE", path)
        return extract_operation_id(response.headers)

    def get_operation_status(self, operation_id: str) -> OperationStatus:
        _require(operation_id=operation_id)
        response = self.transport.request("GET", f"operations/{_segment(operation_id)}")
        return decode_operation_status(response.body, operation_id=operation_id)

    def poll_operation(
        self,
        operation_id: str,
        *,
        timeout: float | None = None,
        interval: float | None = None,
        cancel: CancelSignal | None = None,
    ) -> OperationResult:
        """Block until the operation is terminal and return the outcome without raising."""
        _require(operation_id=operation_id)
        return self._poller.wait(operation_id, timeout=timeout, interval=interval, cancel=cancel)

    def wait_for_operation(
        self,
        operation_id: str,
        *,
        timeout: float | None = None,
        interval: float | None = None,
        cancel: CancelSignal | None = None,
    ) -> OperationResult:
        result = self.poll_operation(
            operation_id, timeout=timeout, interval=interval, cancel=cancel
        )
        result.raise_for_state()
        return result

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> ExtensionsClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def new_client(
    subscription_id: str,
    certificate_pem: bytes | str,
    *,
    management_url: str = DEFAULT_MANAGEMENT_URL,
    api_version: str = DEFAULT_API_VERSION,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    http_retries: int = 0,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    poll_timeout: float = DEFAULT_POLL_TIMEOUT,
    max_query_failures: int = DEFAULT_MAX_QUERY_FAILURES,
) -> ExtensionsClient:
    credentials = load_credentials(subscription_id, certificate_pem)
    transport = ManagementTransport(
        credentials=credentials,
        base_url=management_url,
        api_version=api_version,
        timeout=request_timeout,
        retries=http_retries,
    )
    try:
        return ExtensionsClient(
            transport=transport,
            poll_interval=poll_interval,
            poll_timeout=poll_timeout,
            max_query_failures=max_query_failures,
        )
    except BaseException:
        transport.close()
        raise


__all__ = ["ExtensionsClient", "Transport", "new_client"]
