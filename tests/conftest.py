from __future__ import annotations

import base64
import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)
from cryptography.x509.oid import NameOID


def _self_signed(common_name: str):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return key, cert


@pytest.fixture
def key_and_cert():
    return _self_signed("asm-test")


@pytest.fixture
def pfx_bytes(key_and_cert) -> bytes:
    key, cert = key_and_cert
    return pkcs12.serialize_key_and_certificates(b"asm-test", key, cert, None, NoEncryption())


@pytest.fixture
def pfx_b64(pfx_bytes) -> str:
    return base64.b64encode(pfx_bytes).decode("ascii")


@pytest.fixture
def pem_pair(key_and_cert) -> bytes:
    key, cert = key_and_cert
    return key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()) + cert.public_bytes(
        Encoding.PEM
    )


def build_publish_settings(subscriptions, *, schema_version="2.0", profile_attrs="") -> bytes:
    """Render a PublishData document; ``subscriptions`` is a list of attribute dicts."""
    rows = []
    for attrs in subscriptions:
        rendered = " ".join(f'{k}="{v}"' for k, v in attrs.items())
        rows.append(f"    <Subscription {rendered} />")
    version_attr = f' SchemaVersion="{schema_version}"' if schema_version else ""
    body = "\n".join(rows)
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<PublishData>\n"
        f'  <PublishProfile{version_attr} PublishMethod="AzureServiceManagementAPI"{profile_attrs}>\n'
        f"{body}\n"
        "  </PublishProfile>\n"
        "</PublishData>\n"
    ).encode("utf-8")


@pytest.fixture
def publish_settings_factory():
    return build_publish_settings
