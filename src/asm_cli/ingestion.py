"""Import of credential bundles: publish settings, PEM pairs and PFX files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from asm_cli.certificates import decode_management_certificate, load_pem_pair, pfx_to_pem
from asm_cli.client import DEFAULT_ENDPOINT
from asm_cli.errors import StoreIoError
from asm_cli.publish_settings import (
    CredentialFormat,
    Subscription,
    parse_publish_settings,
    sniff_credential_format,
)
from asm_cli.registration import (
    RegistrationReport,
    ResourceTypeClient,
    ResourceTypeRegistrar,
    ResourceTypeRegistry,
)
from asm_cli.store import ConfigStore
from asm_cli.subscriptions import SubscriptionResolver

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], ResourceTypeClient]


@dataclass
class ImportResult:
    format: CredentialFormat
    subscriptions: list[Subscription] = field(default_factory=list)
    current_subscription: str | None = None
    registration: RegistrationReport | None = None


class CredentialIngestion:
    def __init__(
        self,
        store: ConfigStore,
        registry: ResourceTypeRegistry,
        client_factory: ClientFactory,
        *,
        resolver: SubscriptionResolver | None = None,
        default_endpoint: str = DEFAULT_ENDPOINT,
    ) -> None:
        self.store = store
        self.registry = registry
        self.client_factory = client_factory
        self.resolver = resolver or SubscriptionResolver(store)
        self.default_endpoint = default_endpoint

    def import_file(self, path: str | Path, *, skip_register: bool = False) -> ImportResult:
        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise StoreIoError(f"cannot read credential file {source}: {exc}") from exc
        return self.import_bytes(data, skip_register=skip_register)

    def import_bytes(self, data: bytes, *, skip_register: bool = False) -> ImportResult:
        kind = sniff_credential_format(data)
        if kind == "pem":
            self.store.write_credential_material(load_pem_pair(data).as_bytes())
            return ImportResult(format=kind)
        if kind == "pfx":
            self.store.write_credential_material(pfx_to_pem(data).as_bytes())
            return ImportResult(format=kind)
        return self._import_publish_settings(data, skip_register=skip_register)

    def _import_publish_settings(self, data: bytes, *, skip_register: bool) -> ImportResult:
        profile = parse_publish_settings(data)

        # Every certificate the import uses is decoded before the first write.
        profile_pem = None
        if profile.management_certificate:
            profile_pem = decode_management_certificate(profile.management_certificate)
        if profile.subscriptions:
            first_certificate = profile.certificate_for(profile.subscriptions[0])
            if first_certificate:
                decode_management_certificate(first_certificate)

        self.store.write_publish_settings(data)
        if profile_pem is not None:
            self.store.write_credential_material(profile_pem.as_bytes())

        if profile.url:
            config = self.store.read_config()
            config.endpoint = profile.url
            self.store.write_config(config)

        result = ImportResult(format="xml", subscriptions=list(profile.subscriptions))
        if not profile.subscriptions:
            logger.warning("publish settings contain no subscriptions; no current subscription set")
            return result

        current = self.resolver.set_current(profile.subscriptions[0].id)
        result.current_subscription = current.id

        if skip_register:
            return result

        endpoint = self.store.read_config().endpoint or self.default_endpoint
        client = self.client_factory(endpoint, str(self.store.credential_path))
        registrar = ResourceTypeRegistrar(client)
        result.registration = registrar.register_all(current.id, self.registry)
        return result
