"""asm-cli public surface."""

from asm_cli.certificates import (
    PemCredential,
    decode_management_certificate,
    load_pem_pair,
    pfx_to_pem,
)
from asm_cli.client import DEFAULT_ENDPOINT, ServiceManagementClient
from asm_cli.errors import (
    AsmCliError,
    CertificateFormatError,
    InvalidPublishSettingsError,
    ServiceManagementError,
    StoreIoError,
    UnknownSubscriptionError,
    XmlParseError,
)
from asm_cli.ingestion import CredentialIngestion, ImportResult
from asm_cli.publish_settings import (
    PublishProfile,
    Subscription,
    normalize_subscriptions,
    parse_publish_settings,
    sniff_credential_format,
)
from asm_cli.registration import (
    RegistrationOutcome,
    RegistrationReport,
    RegistrationStatus,
    ResourceTypeRegistrar,
    ResourceTypeRegistry,
)
from asm_cli.store import ConfigStore, PersistedConfig
from asm_cli.subscriptions import SubscriptionResolver

__all__ = [
    "AsmCliError",
    "XmlParseError",
    "InvalidPublishSettingsError",
    "CertificateFormatError",
    "UnknownSubscriptionError",
    "StoreIoError",
    "ServiceManagementError",
    "PemCredential",
    "pfx_to_pem",
    "decode_management_certificate",
    "load_pem_pair",
    "PublishProfile",
    "Subscription",
    "parse_publish_settings",
    "normalize_subscriptions",
    "sniff_credential_format",
    "ConfigStore",
    "PersistedConfig",
    "SubscriptionResolver",
    "ResourceTypeRegistry",
    "ResourceTypeRegistrar",
    "RegistrationStatus",
    "RegistrationOutcome",
    "RegistrationReport",
    "ServiceManagementClient",
    "DEFAULT_ENDPOINT",
    "CredentialIngestion",
    "ImportResult",
]
