"""Certificate-authenticated HTTP transport to the Service Management endpoint."""

from __future__ import annotations

import os
import tempfile
import weakref
from dataclasses import dataclass, field
from typing import Mapping

from azure_extensions_cli.credentials import to_pem_bundle
from azure_extensions_cli.envelope import decode_error
from azure_extensions_cli.errors import (
    InvalidArgumentError,
    ManagementRequestError,
    TransportError,
)
from azure_extensions_cli.models import Credentials

DEFAULT_MANAGEMENT_URL = "https://management.core.windows.net"
DEFAULT_API_VERSION = "2014-10-01"
DEFAULT_REQUEST_TIMEOUT = 30.0
API_VERSION_HEADER = "x-ms-version"


def _remove_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    headers: Mapping[str, str]
    body: bytes


@dataclass
class ManagementTransport:
    credentials: Credentials
    base_url: str = DEFAULT_MANAGEMENT_URL
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    retries: int = 0
    _cert_path: str | None = field(default=None, init=False, repr=False)
    _cert_cleanup: weakref.finalize | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.credentials.subscription_id:
            raise InvalidArgumentError("subscription_id must not be empty")
        if not self.api_version:
            raise InvalidArgumentError("api_version must not be empty")

        import requests
        from requests.adapters import HTTPAdapter
        from urllib3.util.retry import Retry

        self._requests = requests
        self._session = requests.Session()
        # Only reads are retried here; mutating calls are never replayed.
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(500, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)
        self._session.headers.update(
            {
                API_VERSION_HEADER: self.api_version,
                "Content-Type": "application/xml",
            }
        )
        self._session.cert = self._write_cert_bundle()

    def _write_cert_bundle(self) -> str:
        fd, path = tempfile.mkstemp(prefix="azext-", suffix=".pem")
        try:
            with os.fdopen(fd, "wb") as handle:
                os.chmod(path, 0o600)
                handle.write(to_pem_bundle(self.credentials))
        except Exception:
            os.unlink(path)
            raise
        self._cert_path = path
        # Removes the key file even when the transport is never closed.
        self._cert_cleanup = weakref.finalize(self, _remove_file, path)
        return path

    def _url(self, path: str) -> str:
        subscription = self.credentials.subscription_id
        return f"{self.base_url.rstrip('/')}/{subscription}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        body: bytes | None = None,
        params: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        try:
            response = self._session.request(
                method,
                self._url(path),
                data=body,
                params=params,
                timeout=self.timeout,
            )
        except self._requests.RequestException as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            error_code, detail = decode_error(response.content)
            message = f"management request failed: {response.status_code}"
            if error_code or detail:
                message += " " + ": ".join(part for part in (error_code, detail) if part)
            else:
                message += f" {response.text}".rstrip()
            raise ManagementRequestError(
                message,
                status_code=response.status_code,
                error_code=error_code,
                detail=detail,
            )
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def close(self) -> None:
        self._session.close()
        if self._cert_cleanup is not None:
            self._cert_cleanup()
        self._cert_path = None

    def __enter__(self) -> ManagementTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
