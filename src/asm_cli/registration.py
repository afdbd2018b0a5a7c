"""Resource-type registration for a subscription.

Registration runs in two strictly sequential phases. Every known type is
listed first, one call at a time; only then are the unregistered ones
registered, again one call at a time. The service serializes mutations per
subscription, so nothing here runs concurrently.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Protocol

from asm_cli.errors import ServiceManagementError

logger = logging.getLogger(__name__)

UNREGISTERED_STATE = "unregistered"


class ResourceTypeClient(Protocol):
    def list_resource_types(self, subscription_id: str, names: list[str]) -> list[dict[str, str]]: ...

    def register_resource_provider(self, subscription_id: str, name: str) -> None: ...


class ResourceTypeRegistry:
    """Append-only, insertion-ordered set of resource-type names."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: dict[str, None] = {}
        self.extend(names)

    def add(self, name: str) -> None:
        name = name.strip()
        if not name:
            raise ValueError("resource type name must not be empty")
        self._names.setdefault(name, None)

    def extend(self, names: Iterable[str]) -> None:
        for name in names:
            self.add(name)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names


class RegistrationStatus(str, enum.Enum):
    ALREADY_REGISTERED = "already-registered"
    REGISTERED = "registered"
    UNKNOWN_TYPE = "unknown-type"
    FAILED = "failed"


@dataclass(frozen=True)
class RegistrationOutcome:
    resource_type: str
    status: RegistrationStatus
    error: str | None = None


@dataclass
class RegistrationReport:
    subscription_id: str
    outcomes: list[RegistrationOutcome] = field(default_factory=list)
    states: dict[str, str] = field(default_factory=dict)

    @property
    def failures(self) -> list[RegistrationOutcome]:
        return [o for o in self.outcomes if o.status is RegistrationStatus.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failures

    def outcome_for(self, resource_type: str) -> RegistrationOutcome | None:
        for outcome in self.outcomes:
            if outcome.resource_type == resource_type:
                return outcome
        return None

    def error_summary(self) -> str | None:
        if self.ok:
            return None
        return "; ".join(f"{o.resource_type}: {o.error}" for o in self.failures)


class ResourceTypeRegistrar:
    def __init__(self, client: ResourceTypeClient) -> None:
        self.client = client

    def _list_state(self, subscription_id: str, name: str) -> str | None:
        """Return the service state for ``name``, or None when the type is unknown."""
        try:
            resources = self.client.list_resource_types(subscription_id, [name])
        except ServiceManagementError as exc:
            if exc.is_invalid_service_type:
                logger.debug("resource type %s is not known to the service: %s", name, exc)
                return None
            raise
        for resource in resources:
            if resource.get("type", "").lower() == name.lower():
                return resource.get("state", "")
        return None

    def register_all(
        self, subscription_id: str, registry: Iterable[str]
    ) -> RegistrationReport:
        report = RegistrationReport(subscription_id=subscription_id)

        for name in registry:
            state = self._list_state(subscription_id, name)
            if state is None:
                report.outcomes.append(RegistrationOutcome(name, RegistrationStatus.UNKNOWN_TYPE))
                continue
            report.states[name] = state

        pending: list[str] = []
        for name, state in report.states.items():
            if state.lower() == UNREGISTERED_STATE:
                pending.append(name)
            else:
                report.outcomes.append(RegistrationOutcome(name, RegistrationStatus.ALREADY_REGISTERED))

        for name in pending:
            logger.info("registering resource type %s for subscription %s", name, subscription_id)
            try:
                self.client.register_resource_provider(subscription_id, name)
            except ServiceManagementError as exc:
                logger.warning("failed to register resource type %s: %s", name, exc)
                report.outcomes.append(
                    RegistrationOutcome(name, RegistrationStatus.FAILED, error=str(exc))
                )
                continue
            report.outcomes.append(RegistrationOutcome(name, RegistrationStatus.REGISTERED))

        return report
