"""Command-line interface for azure-extensions-cli."""

from __future__ import annotations

import argparse
import json
import re
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import asdict
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Iterator, Sequence

from azure_extensions_cli.cli.config import CLIConfig, ConfigError, load_cli_config
from azure_extensions_cli.cli.log import configure_logging
from azure_extensions_cli.cli.output import render_replication_table, render_versions_table
from azure_extensions_cli.client import ExtensionsClient, new_client
from azure_extensions_cli.errors import (
    AzureExtensionsError,
    InvalidArgumentError,
    InvalidCertificateError,
    MalformedResponseError,
    ManagementRequestError,
    OperationCancelledError,
    OperationFailedError,
    OperationQueryFailedError,
    OperationTimedOutError,
    TransportError,
)
from azure_extensions_cli.manifest import build_extension_manifest, build_unpublish_manifest
from azure_extensions_cli.models import OperationResult
from azure_extensions_cli.transport import DEFAULT_API_VERSION

PROG = "azure-extensions-cli"

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_NETWORK_ERROR = 2
EXIT_TIMEOUT = 3
EXIT_OPERATION_FAILED = 4

_SENSITIVE_FIELDS = (
    "password",
    "secret",
    "token",
    "sig",
    "authorization",
)
_PEM_RE = re.compile(r"-----BEGIN [A-Z ]+-----.*?-----END [A-Z ]+-----", re.DOTALL)


def _cli_version() -> str:
    try:
        return pkg_version("azure-extensions-cli")
    except PackageNotFoundError:
        return "0.0.0+local"


def _add_subscription_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--subscription-id",
        default=None,
        help="Subscription ID for the publisher subscription (default from config)",
    )
    parser.add_argument(
        "--subscription-cert",
        default=None,
        help="Path of subscription management certificate (.pem) file (default from config)",
    )


def _add_extension_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--namespace",
        required=True,
        help="Publisher namespace e.g. Microsoft.Azure.Extensions",
    )
    parser.add_argument("--name", required=True, help="Name of the extension e.g. FooExtension")
    parser.add_argument(
        "--version",
        required=True,
        help="Version of the extension package e.g. 1.0.0",
    )


def _add_wait_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout-seconds",
        type=float,
        default=None,
        help="Maximum time to wait for the operation (default from config)",
    )
    parser.add_argument(
        "--poll-seconds",
        type=float,
        default=None,
        help="Delay between operation status checks (default from config)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description=(
            "This tool is designed for Microsoft internal extension publishers to release, "
            "update and manage Virtual Machine extensions."
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{PROG} {_cli_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to CLI config TOML (default: ~/.azure_extensions_cli/config.toml)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    version = sub.add_parser("version", help="Show CLI and API version")
    version.add_argument("--json", action="store_true", help="Print version details as JSON")

    manifest = sub.add_parser(
        "new-extension-manifest",
        help="Creates an XML file used to publish or update extension.",
    )
    _add_extension_args(manifest)
    manifest.add_argument("--label", required=True, help="Human readable name of the extension")
    manifest.add_argument("--description", required=True, help="Description of the extension")
    manifest.add_argument(
        "--eula-url", required=True, help="URL to the End-User License Agreement page"
    )
    manifest.add_argument("--privacy-url", required=True, help="URL to the Privacy Policy page")
    manifest.add_argument(
        "--homepage-url", required=True, help="URL to the homepage of the extension"
    )
    manifest.add_argument(
        "--company", required=True, help="Human-readable Company Name of the publisher"
    )
    manifest.add_argument("--supported-os", required=True, help="Extension platform e.g. 'Linux'")

    list_versions = sub.add_parser(
        "list-versions",
        help="Lists all published extension versions for subscription",
    )
    _add_subscription_args(list_versions)
    list_versions.add_argument("--json", action="store_true")

    replication = sub.add_parser(
        "replication-status",
        help="Retrieves replication status for an uploaded extension package",
    )
    _add_subscription_args(replication)
    _add_extension_args(replication)
    replication.add_argument("--json", action="store_true")

    unpublish = sub.add_parser(
        "unpublish-version",
        help="Marks the specified version of the extension internal. Does not delete.",
    )
    _add_subscription_args(unpublish)
    _add_extension_args(unpublish)
    _add_wait_args(unpublish)
    unpublish.add_argument("--json", action="store_true")

    delete = sub.add_parser(
        "delete-version",
        help="Deletes the extension version. It should be unpublished first.",
    )
    _add_subscription_args(delete)
    _add_extension_args(delete)
    _add_wait_args(delete)
    delete.add_argument("--json", action="store_true")

    return parser


def _sanitize_error_text(value: str) -> str:
    redacted = _PEM_RE.sub("[REDACTED PEM]", value)
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({field}\s*[=:]\s*)([^,&\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _print_client_error(stderr, exc: AzureExtensionsError) -> int:
    if isinstance(exc, InvalidCertificateError):
        return _print_error(stderr, "certificate error", str(exc), code=EXIT_VALIDATION_ERROR)
    if isinstance(exc, InvalidArgumentError):
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)
    request_error = exc if isinstance(exc, ManagementRequestError) else exc.__cause__
    if isinstance(request_error, ManagementRequestError) and request_error.status_code == 403:
        return _print_error(
            stderr,
            "request error",
            (
                f"{exc}. Check that the management certificate is uploaded to the "
                "subscription and that the subscription id is correct."
            ),
            code=EXIT_NETWORK_ERROR,
        )
    if isinstance(exc, (OperationTimedOutError, OperationCancelledError)):
        return _print_error(stderr, "timeout error", str(exc), code=EXIT_TIMEOUT)
    if isinstance(exc, OperationFailedError):
        return _print_error(stderr, "operation error", str(exc), code=EXIT_OPERATION_FAILED)
    if isinstance(exc, (OperationQueryFailedError, TransportError, MalformedResponseError)):
        return _print_error(stderr, "request error", str(exc), code=EXIT_NETWORK_ERROR)
    return _print_error(stderr, "error", str(exc), code=EXIT_NETWORK_ERROR)


def _build_client(*, args, config: CLIConfig) -> ExtensionsClient:
    subscription_id = args.subscription_id or config.subscription_id
    cert_file = args.subscription_cert or config.subscription_cert
    if not subscription_id:
        raise InvalidArgumentError("argument --subscription-id must be provided")
    if not cert_file:
        raise InvalidArgumentError("argument --subscription-cert must be provided")

    cert_path = Path(cert_file).expanduser()
    try:
        certificate_pem = cert_path.read_bytes()
    except OSError as exc:
        raise InvalidCertificateError(f"cannot read certificate {cert_path}: {exc}") from exc

    return new_client(
        subscription_id,
        certificate_pem,
        management_url=config.management_url,
        api_version=config.api_version,
        request_timeout=config.request_timeout_seconds,
        http_retries=config.http_retries,
        poll_interval=config.poll_interval_seconds,
        poll_timeout=config.poll_timeout_seconds,
        max_query_failures=config.max_query_failures,
    )


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancellation request observed between polls."""
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _run_version(*, config: CLIConfig, as_json: bool, stdout) -> int:
    payload = {
        "cli": PROG,
        "version": _cli_version(),
        "api_version": config.api_version,
        "default_api_version": DEFAULT_API_VERSION,
        "management_url": config.management_url,
    }
    if as_json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print(f"{PROG} {payload['version']}", file=stdout)
    print(f"api version: {payload['api_version']}", file=stdout)
    print(f"management url: {payload['management_url']}", file=stdout)
    return EXIT_SUCCESS


def _run_new_extension_manifest(*, args, stdout, stderr) -> int:
    try:
        manifest = build_extension_manifest(
            namespace=args.namespace,
            name=args.name,
            version=args.version,
            label=args.label,
            description=args.description,
            eula_url=args.eula_url,
            privacy_url=args.privacy_url,
            homepage_url=args.homepage_url,
            company=args.company,
            supported_os=args.supported_os,
        )
    except InvalidArgumentError as exc:
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)
    stdout.write(manifest)
    return EXIT_SUCCESS


def _run_list_versions(*, args, config: CLIConfig, stdout, stderr, logger) -> int:
    try:
        with _build_client(args=args, config=config) as client:
            logger.debug("Requesting published extension versions.")
            versions = client.list_versions()
    except AzureExtensionsError as exc:
        return _print_client_error(stderr, exc)

    if args.json:
        print(json.dumps([asdict(item) for item in versions], sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    render_versions_table(versions, stdout)
    return EXIT_SUCCESS


def _run_replication_status(*, args, config: CLIConfig, stdout, stderr, logger) -> int:
    try:
        with _build_client(args=args, config=config) as client:
            logger.debug("Requesting replication status.")
            statuses = client.get_replication_status(args.namespace, args.name, args.version)
    except AzureExtensionsError as exc:
        return _print_client_error(stderr, exc)

    if args.json:
        print(json.dumps([asdict(item) for item in statuses], sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    render_replication_table(statuses, stdout)
    return EXIT_SUCCESS


def _wait(
    client: ExtensionsClient, operation_id: str, *, args, label: str, logger
) -> OperationResult:
    logger.info("%s operation started. x-ms-operation-id=%s", label, operation_id)
    with _cancel_on_interrupt() as cancel:
        result = client.wait_for_operation(
            operation_id,
            timeout=args.timeout_seconds,
            interval=args.poll_seconds,
            cancel=cancel,
        )
    logger.info("%s operation finished. x-ms-operation-id=%s", label, operation_id)
    return result


def _print_operation(result: OperationResult, *, args, stdout) -> int:
    output = {
        "operation_id": result.operation_id,
        "status": result.state,
        "queries": result.queries,
    }
    if args.json:
        print(json.dumps(output, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print(f"operation_id: {output['operation_id']}", file=stdout)
    print(f"status: {output['status']}", file=stdout)
    return EXIT_SUCCESS


def _run_unpublish_version(*, args, config: CLIConfig, stdout, stderr, logger) -> int:
    try:
        manifest = build_unpublish_manifest(
            namespace=args.namespace, name=args.name, version=args.version
        )
        with _build_client(args=args, config=config) as client:
            operation_id = client.update_extension(manifest)
            result = _wait(client, operation_id, args=args, label="UpdateExtension", logger=logger)
    except AzureExtensionsError as exc:
        return _print_client_error(stderr, exc)
    return _print_operation(result, args=args, stdout=stdout)


def _run_delete_version(*, args, config: CLIConfig, stdout, stderr, logger) -> int:
    logger.info("Deleting extension version. Make sure you unpublished before deleting.")
    try:
        with _build_client(args=args, config=config) as client:
            operation_id = client.delete_extension(args.namespace, args.name, args.version)
            result = _wait(client, operation_id, args=args, label="DeleteExtension", logger=logger)
    except AzureExtensionsError as exc:
        return _print_client_error(stderr, exc)
    return _print_operation(result, args=args, stdout=stdout)


def main(argv: Sequence[str] | None = None, *, stdout=sys.stdout, stderr=sys.stderr) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logger = configure_logging(stderr, verbose=args.verbose)

    try:
        config = load_cli_config(args.config)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    if args.command == "version":
        return _run_version(config=config, as_json=args.json, stdout=stdout)

    if args.command == "new-extension-manifest":
        return _run_new_extension_manifest(args=args, stdout=stdout, stderr=stderr)

    if args.command == "list-versions":
        return _run_list_versions(
            args=args, config=config, stdout=stdout, stderr=stderr, logger=logger
        )

    if args.command == "replication-status":
        return _run_replication_status(
            args=args, config=config, stdout=stdout, stderr=stderr, logger=logger
        )

    if args.command == "unpublish-version":
        return _run_unpublish_version(
            args=args, config=config, stdout=stdout, stderr=stderr, logger=logger
        )

    if args.command == "delete-version":
        return _run_delete_version(
            args=args, config=config, stdout=stdout, stderr=stderr, logger=logger
        )

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
