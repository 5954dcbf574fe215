from __future__ import annotations

import pytest
from defusedxml import ElementTree

from azure_extensions_cli.errors import InvalidArgumentError
from azure_extensions_cli.manifest import build_extension_manifest, build_unpublish_manifest

NS = "{http://schemas.microsoft.com/windowsazure}"

_FIELDS = {
    "namespace": "Microsoft.Azure.Extensions",
    "name": "CustomScript",
    "version": "2.0.1",
    "label": "Custom Script",
    "description": "Runs scripts & commands",
    "eula_url": "https://example.com/eula",
    "privacy_url": "https://example.com/privacy",
    "homepage_url": "https://example.com",
    "company": "Contoso",
    "supported_os": "Linux",
}


def test_extension_manifest_field_order_and_placeholders() -> None:
    manifest = build_extension_manifest(**_FIELDS)

    assert "%BLOB_URL%" in manifest
    assert "<!--%REGIONS%-->" in manifest
    root = ElementTree.fromstring(manifest.encode("utf-8"))
    tags = [child.tag.replace(NS, "") for child in root]
    assert tags == [
        "ProviderNameSpace",
        "Type",
        "Version",
        "Label",
        "HostingResources",
        "MediaLink",
        "Description",
        "IsInternalExtension",
        "Eula",
        "PrivacyUri",
        "HomepageUri",
        "IsJsonExtension",
        "CompanyName",
        "SupportedOS",
    ]
    assert root.find(f"{NS}Description").text == "Runs scripts & commands"


def test_extension_manifest_escapes_markup() -> None:
    manifest = build_extension_manifest(**{**_FIELDS, "label": "<b>bold</b>"})
    assert "&lt;b&gt;bold&lt;/b&gt;" in manifest


def test_extension_manifest_rejects_missing_and_blank_fields() -> None:
    fields = dict(_FIELDS)
    fields.pop("company")
    fields["label"] = "   "
    with pytest.raises(InvalidArgumentError) as excinfo:
        build_extension_manifest(**fields)
    assert "company" in str(excinfo.value)
    assert "label" in str(excinfo.value)


def test_unpublish_manifest_marks_version_internal() -> None:
    manifest = build_unpublish_manifest(namespace="ns", name="Foo", version="1.0.0")

    root = ElementTree.fromstring(manifest.encode("utf-8"))
    values = {child.tag.replace(NS, ""): child.text for child in root}
    assert values == {
        "ProviderNameSpace": "ns",
        "Type": "Foo",
        "Version": "1.0.0",
        "IsInternalExtension": "true",
        "IsJsonExtension": "true",
    }


def test_unpublish_manifest_requires_identity() -> None:
    with pytest.raises(InvalidArgumentError):
        build_unpublish_manifest(namespace="ns", name="", version="1.0.0")
