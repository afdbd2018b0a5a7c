"""Subscription lookup and current-subscription selection."""

from __future__ import annotations

import logging

from asm_cli.certificates import decode_management_certificate
from asm_cli.errors import UnknownSubscriptionError
from asm_cli.publish_settings import PublishProfile, Subscription, parse_publish_settings
from asm_cli.store import ConfigStore

logger = logging.getLogger(__name__)


def _match_by_name(subscriptions: list[Subscription], token: str) -> Subscription | None:
    lowered = token.lower()
    for subscription in subscriptions:
        if subscription.name.lower() == lowered:
            return subscription
    return None


def _match_by_id(subscriptions: list[Subscription], token: str) -> Subscription | None:
    for subscription in subscriptions:
        if subscription.id == token:
            return subscription
    return None


class SubscriptionResolver:
    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    def load_profile(self) -> PublishProfile:
        raw = self.store.read_publish_settings()
        if raw is None:
            return PublishProfile()
        return parse_publish_settings(raw)

    def list_subscriptions(self) -> list[Subscription]:
        return list(self.load_profile().subscriptions)

    def current(self) -> str | None:
        return self.store.read_config().subscription

    def resolve(self, token: str | None = None) -> str | None:
        """Map a subscription name or id to an id.

        Names are compared case-insensitively and win over ids. An unmatched
        token comes back unchanged so the service can reject it.
        """
        if token is None:
            return self.current()

        subscriptions = self.list_subscriptions()
        match = _match_by_name(subscriptions, token) or _match_by_id(subscriptions, token)
        if match is None:
            return token
        return match.id

    def set_current(self, subscription_id: str) -> Subscription:
        profile = self.load_profile()
        subscriptions = list(profile.subscriptions)
        subscription = _match_by_id(subscriptions, subscription_id) or _match_by_name(
            subscriptions, subscription_id
        )
        if subscription is None:
            raise UnknownSubscriptionError(subscription_id)

        config = self.store.read_config()

        certificate = profile.certificate_for(subscription)
        if certificate:
            pem = decode_management_certificate(certificate)
            self.store.write_credential_material(pem.as_bytes())

        if subscription.service_management_url and subscription.service_management_url != config.endpoint:
            logger.debug(
                "endpoint changed from %s to %s", config.endpoint, subscription.service_management_url
            )
            config.endpoint = subscription.service_management_url

        # The subscription id is always part of the final write.
        config.subscription = subscription.id
        self.store.write_config(config)
        return subscription
