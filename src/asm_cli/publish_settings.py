"""Publish-settings parsing and credential format detection.

A publish-settings file looks like::

    <PublishData>
      <PublishProfile SchemaVersion="2.0" PublishMethod="AzureServiceManagementAPI">
        <Subscription ServiceManagementUrl="https://management.core.windows.net"
                      Id="..." Name="..." ManagementCertificate="<base64 pfx>" />
      </PublishProfile>
    </PublishData>

Schema v1 files carry ``Url`` and ``ManagementCertificate`` on the profile
itself instead of on each subscription.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from defusedxml import DefusedXmlException
from defusedxml import ElementTree
from pydantic import BaseModel, ConfigDict, Field

from asm_cli.errors import InvalidPublishSettingsError, XmlParseError

CredentialFormat = Literal["xml", "pem", "pfx"]

CURRENT_SCHEMA_VERSION = "2.0"

_UTF8_BOM = b"\xef\xbb\xbf"
_UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    management_certificate: Optional[str] = None
    service_management_url: Optional[str] = None


class PublishProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    schema_version: Optional[str] = None
    management_certificate: Optional[str] = None
    subscriptions: list[Subscription] = Field(default_factory=list)

    def certificate_for(self, subscription: Subscription) -> str | None:
        return subscription.management_certificate or self.management_certificate


def sniff_credential_format(data: bytes) -> CredentialFormat:
    """Classify credential bytes by their leading content.

    A UTF-8 or UTF-16 byte order mark is skipped. DER-encoded PFX starts with a
    SEQUENCE tag (0x30), so neither mark can open one.
    """
    if data.startswith(_UTF16_BOMS):
        text = data[:64].decode("utf-16", errors="ignore").lstrip()
        return "xml" if text.startswith("<") else "pfx"
    head = data[len(_UTF8_BOM) :] if data.startswith(_UTF8_BOM) else data
    head = head.lstrip()
    if head.startswith(b"-----BEGIN"):
        return "pem"
    if head.startswith(b"<"):
        return "xml"
    return "pfx"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _element_to_dict(element: Any) -> dict[str, Any]:
    node: dict[str, Any] = {}
    if element.attrib:
        node["@"] = {_local_name(k): v for k, v in element.attrib.items()}
    for child in element:
        name = _local_name(child.tag)
        value = _element_to_dict(child)
        if name not in node:
            node[name] = value
        elif isinstance(node[name], list):
            node[name].append(value)
        else:
            node[name] = [node[name], value]
    return node


def normalize_subscriptions(value: Any) -> list[dict[str, Any]]:
    """Return subscription nodes as a list whatever shape the tree gave them."""
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return list(value)
    raise InvalidPublishSettingsError("Subscription entries must be elements")


def _subscription_from_node(node: dict[str, Any]) -> Subscription:
    attrs = node.get("@", {})
    subscription_id = (attrs.get("Id") or "").strip()
    if not subscription_id:
        raise InvalidPublishSettingsError("Subscription element is missing an Id")
    return Subscription(
        id=subscription_id,
        name=(attrs.get("Name") or "").strip() or subscription_id,
        management_certificate=attrs.get("ManagementCertificate") or None,
        service_management_url=attrs.get("ServiceManagementUrl") or None,
    )


def _find_profile(root: Any) -> Any:
    name = _local_name(root.tag)
    if name == "PublishProfile":
        return root
    if name == "PublishData":
        for child in root:
            if _local_name(child.tag) == "PublishProfile":
                return child
    raise InvalidPublishSettingsError("document has no PublishProfile element")


def parse_publish_settings(xml_bytes: bytes) -> PublishProfile:
    try:
        root = ElementTree.fromstring(xml_bytes)
    except ElementTree.ParseError as exc:
        raise XmlParseError(f"malformed publish settings XML: {exc}") from exc
    except DefusedXmlException as exc:
        raise XmlParseError(f"publish settings XML uses forbidden constructs: {exc}") from exc

    tree = _element_to_dict(_find_profile(root))
    attrs = tree.get("@", {})
    schema_version = attrs.get("SchemaVersion")
    management_certificate = attrs.get("ManagementCertificate") or None
    if schema_version != CURRENT_SCHEMA_VERSION and not management_certificate:
        raise InvalidPublishSettingsError("PublishProfile is missing ManagementCertificate")

    subscriptions = [
        _subscription_from_node(node)
        for node in normalize_subscriptions(tree.get("Subscription"))
    ]
    return PublishProfile(
        url=attrs.get("Url") or None,
        schema_version=schema_version,
        management_certificate=management_certificate,
        subscriptions=subscriptions,
    )
