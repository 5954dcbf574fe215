"""XML request/response envelope handling for the Service Management API."""

from __future__ import annotations

from typing import Iterator, Mapping
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml import ElementTree

from azure_extensions_cli.errors import (
    InvalidArgumentError,
    MalformedResponseError,
    MissingOperationIDError,
)
from azure_extensions_cli.models import (
    OPERATION_STATUSES,
    ExtensionVersionInfo,
    OperationStatus,
    ReplicationStatusEntry,
)

AZURE_XML_NAMESPACE = "http://schemas.microsoft.com/windowsazure"
OPERATION_ID_HEADER = "x-ms-request-id"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse(body: bytes | str, root_name: str) -> Element:
    if not body:
        raise MalformedResponseError(f"empty response, expected <{root_name}>")
    try:
        root = ElementTree.fromstring(body)
    except (ElementTree.ParseError, DefusedXmlException) as exc:
        raise MalformedResponseError(f"response is not valid XML: {exc}") from exc
    if _local_name(root.tag) != root_name:
        raise MalformedResponseError(
            f"unexpected response root <{_local_name(root.tag)}>, expected <{root_name}>"
        )
    return root


def _children(parent: Element, name: str) -> Iterator[Element]:
    for child in parent:
        if _local_name(child.tag) == name:
            yield child


def _text(parent: Element, name: str, *, required: bool = True) -> str | None:
    for child in _children(parent, name):
        return (child.text or "").strip()
    if required:
        raise MalformedResponseError(f"<{_local_name(parent.tag)}> is missing <{name}>")
    return None


def _required_text(parent: Element, name: str) -> str:
    value = _text(parent, name)
    if not value:
        raise MalformedResponseError(f"<{_local_name(parent.tag)}> has empty <{name}>")
    return value


def _to_bool(value: str | None, name: str) -> bool:
    if value is None or value == "":
        return False
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise MalformedResponseError(f"<{name}> must be true or false, got {value!r}")


def encode_body(manifest_xml: bytes | str) -> bytes:
    """Request bodies are manifests produced elsewhere; send them as-is."""
    if isinstance(manifest_xml, str):
        manifest_xml = manifest_xml.encode("utf-8")
    if not manifest_xml or not manifest_xml.strip():
        raise InvalidArgumentError("manifest must not be empty")
    return manifest_xml


def decode_extension_versions(body: bytes | str) -> list[ExtensionVersionInfo]:
    root = _parse(body, "ExtensionImages")
    return [
        ExtensionVersionInfo(
            namespace=_required_text(image, "ProviderNameSpace"),
            name=_required_text(image, "Type"),
            version=_required_text(image, "Version"),
            replication_completed=_to_bool(
                _text(image, "ReplicationCompleted", required=False), "ReplicationCompleted"
            ),
            regions=_text(image, "Regions", required=False) or "",
        )
        for image in _children(root, "ExtensionImage")
    ]


def decode_replication_statuses(body: bytes | str) -> list[ReplicationStatusEntry]:
    root = _parse(body, "ReplicationStatusList")
    return [
        ReplicationStatusEntry(
            location=_required_text(item, "Location"),
            status=_required_text(item, "Status"),
        )
        for item in _children(root, "ReplicationStatus")
    ]


def decode_operation_status(body: bytes | str, *, operation_id: str) -> OperationStatus:
    root = _parse(body, "Operation")
    status = _required_text(root, "Status")
    if status not in OPERATION_STATUSES:
        raise MalformedResponseError(f"unknown operation status {status!r}")

    raw_http_status = _text(root, "HttpStatusCode", required=False)
    http_status_code: int | None = None
    if raw_http_status:
        try:
            http_status_code = int(raw_http_status)
        except ValueError as exc:
            raise MalformedResponseError(
                f"<HttpStatusCode> must be an integer, got {raw_http_status!r}"
            ) from exc

    error_code: str | None = None
    error_message: str | None = None
    for error in _children(root, "Error"):
        error_code = _text(error, "Code", required=False) or None
        error_message = _text(error, "Message", required=False) or None

    return OperationStatus(
        operation_id=operation_id,
        status=status,  # type: ignore[arg-type]
        http_status_code=http_status_code,
        error_code=error_code,
        error_message=error_message,
    )


def decode_error(body: bytes | str | None) -> tuple[str | None, str | None]:
    """Best-effort read of an ``<Error>`` body; absent fields come back as None."""
    if not body:
        return None, None
    try:
        root = _parse(body, "Error")
    except MalformedResponseError:
        return None, None
    return (
        _text(root, "Code", required=False) or None,
        _text(root, "Message", required=False) or None,
    )


def extract_operation_id(headers: Mapping[str, str]) -> str:
    for key, value in headers.items():
        if key.lower() == OPERATION_ID_HEADER and value and value.strip():
            return value
    raise MissingOperationIDError(f"response is missing the {OPERATION_ID_HEADER} header")
