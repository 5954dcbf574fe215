"""Client and CLI for publishing VM extensions through Azure Service Management."""

from azure_extensions_cli.client import ExtensionsClient, new_client
from azure_extensions_cli.credentials import load_credentials
from azure_extensions_cli.errors import (
    AzureExtensionsError,
    InvalidArgumentError,
    InvalidCertificateError,
    MalformedResponseError,
    ManagementRequestError,
    MissingOperationIDError,
    OperationCancelledError,
    OperationError,
    OperationFailedError,
    OperationQueryFailedError,
    OperationTimedOutError,
    TransportError,
)
from azure_extensions_cli.manifest import build_extension_manifest, build_unpublish_manifest
from azure_extensions_cli.models import (
    Credentials,
    ExtensionVersionInfo,
    OperationResult,
    OperationStatus,
    ReplicationStatusEntry,
)
from azure_extensions_cli.poller import OperationPoller
from azure_extensions_cli.transport import ManagementTransport

__all__ = [
    "AzureExtensionsError",
    "InvalidArgumentError",
    "InvalidCertificateError",
    "TransportError",
    "ManagementRequestError",
    "MalformedResponseError",
    "MissingOperationIDError",
    "OperationError",
    "OperationFailedError",
    "OperationQueryFailedError",
    "OperationTimedOutError",
    "OperationCancelledError",
    "Credentials",
    "ExtensionVersionInfo",
    "ReplicationStatusEntry",
    "OperationStatus",
    "OperationResult",
    "load_credentials",
    "ManagementTransport",
    "OperationPoller",
    "ExtensionsClient",
    "new_client",
    "build_extension_manifest",
    "build_unpublish_manifest",
]
