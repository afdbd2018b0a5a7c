"""Error types for asm-cli."""

from __future__ import annotations

import re

_INVALID_SERVICE_TYPE_RE = re.compile(r"(?i)service type\s+\S+\s+is invalid")


class AsmCliError(RuntimeError):
    """Base error."""


class XmlParseError(AsmCliError):
    """Publish-settings bytes are not well-formed XML."""


class InvalidPublishSettingsError(AsmCliError):
    """Well-formed XML that is not a usable publish-settings document."""


class CertificateFormatError(AsmCliError):
    """Certificate material could not be decoded."""


class UnknownSubscriptionError(AsmCliError):
    """No known subscription matches the requested id or name."""

    def __init__(self, subscription: str) -> None:
        super().__init__(f"subscription not found: {subscription}")
        self.subscription = subscription


class StoreIoError(AsmCliError):
    """Reading or writing the local account store failed."""


class ServiceManagementError(AsmCliError):
    """Service-management call returned an error or could not be made."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    @property
    def is_invalid_service_type(self) -> bool:
        if self.code is not None and self.code.lower() == "badrequest":
            return True
        if self.status_code == 400:
            return True
        return bool(_INVALID_SERVICE_TYPE_RE.search(self.message))
