"""Extension manifest documents submitted to the publishing API."""

from __future__ import annotations

from typing import TypeVar
from xml.sax.saxutils import escape

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from azure_extensions_cli.envelope import AZURE_XML_NAMESPACE
from azure_extensions_cli.errors import InvalidArgumentError

BLOB_URL_PLACEHOLDER = "%BLOB_URL%"
REGIONS_PLACEHOLDER = "<!--%REGIONS%-->"

_HEADER = (
    '<?xml version="1.0" encoding="utf-8" ?>\n'
    f'<ExtensionImage xmlns="{AZURE_XML_NAMESPACE}"'
    '  xmlns:i="http://www.w3.org/2001/XMLSchema-instance">\n'
    "  <!-- WARNING: Ordering of fields matter in this file. -->\n"
)


class ExtensionIdentity(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    namespace: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)


class ExtensionManifest(ExtensionIdentity):
    label: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    eula_url: str = Field(..., min_length=1)
    privacy_url: str = Field(..., min_length=1)
    homepage_url: str = Field(..., min_length=1)
    company: str = Field(..., min_length=1)
    supported_os: str = Field(..., min_length=1)


ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: type[ModelT], values: dict[str, str]) -> ModelT:
    try:
        return model(**values)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        raise InvalidArgumentError(f"invalid manifest fields: {', '.join(fields)}") from exc


def _element(name: str, value: str) -> str:
    return f"  <{name}>{escape(value)}</{name}>\n"


def build_extension_manifest(**values: str) -> str:
    """Publishing manifest.

    ``%BLOB_URL%`` and the ``<!--%REGIONS%-->`` comment are left for the
    publisher to fill in before submitting.
    """
    manifest = _validate(ExtensionManifest, values)
    return (
        _HEADER
        + _element("ProviderNameSpace", manifest.namespace)
        + _element("Type", manifest.name)
        + _element("Version", manifest.version)
        + _element("Label", manifest.label)
        + "  <HostingResources>VmRole</HostingResources>\n"
        + f"  <MediaLink>{BLOB_URL_PLACEHOLDER}</MediaLink>\n"
        + _element("Description", manifest.description)
        + "  <IsInternalExtension>true</IsInternalExtension>\n"
        + _element("Eula", manifest.eula_url)
        + _element("PrivacyUri", manifest.privacy_url)
        + _element("HomepageUri", manifest.homepage_url)
        + "  <IsJsonExtension>true</IsJsonExtension>\n"
        + _element("CompanyName", manifest.company)
        + _element("SupportedOS", manifest.supported_os)
        + f"  {REGIONS_PLACEHOLDER}\n"
        + "</ExtensionImage>\n"
    )


def build_unpublish_manifest(*, namespace: str, name: str, version: str) -> str:
    """Marks a version internal; submitted through the regular update call."""
    identity = _validate(
        ExtensionIdentity, {"namespace": namespace, "name": name, "version": version}
    )
    return (
        _HEADER
        + _element("ProviderNameSpace", identity.namespace)
        + _element("Type", identity.name)
        + _element("Version", identity.version)
        + "  <IsInternalExtension>true</IsInternalExtension>\n"
        + "  <IsJsonExtension>true</IsJsonExtension>\n"
        + "</ExtensionImage>"
    )
