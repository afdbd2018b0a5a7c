"""On-disk account store: config record, publish settings and credential file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from asm_cli.errors import StoreIoError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
PUBLISH_SETTINGS_FILENAME = "publishSettings.xml"
CREDENTIAL_FILENAME = "managementCertificate.pem"

_LEGACY_PORT_KEY = "port"
_LEGACY_SUBSCRIPTION_KEY = "Subscription"


@dataclass
class PersistedConfig:
    endpoint: str | None = None
    subscription: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.extra)
        if self.endpoint is not None:
            payload["endpoint"] = self.endpoint
        if self.subscription is not None:
            payload["subscription"] = self.subscription
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> PersistedConfig:
        extra = {k: v for k, v in payload.items() if k not in {"endpoint", "subscription"}}
        endpoint = payload.get("endpoint")
        subscription = payload.get("subscription")
        return cls(
            endpoint=str(endpoint) if endpoint else None,
            subscription=str(subscription) if subscription else None,
            extra=extra,
        )


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def _tmp_path_for(path: Path) -> Path:
    return path.with_name(f".{path.name}.tmp")


def _legacy_endpoint_url(endpoint: str, port: Any) -> str:
    # A bare "host" or "host:port" is parsed as a network location.
    netloc = endpoint if "://" in endpoint else f"//{endpoint.strip('/')}"
    host = urlsplit(netloc).hostname
    return f"https://{host}:{port}"


def migrate_legacy_config(payload: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """Upgrade old config shapes. Returns the new payload and whether anything changed."""
    migrated = dict(payload)
    changed = False

    if _LEGACY_PORT_KEY in migrated:
        port = migrated.pop(_LEGACY_PORT_KEY)
        endpoint = migrated.get("endpoint")
        if endpoint and port not in (None, ""):
            migrated["endpoint"] = _legacy_endpoint_url(str(endpoint), port)
        changed = True

    if _LEGACY_SUBSCRIPTION_KEY in migrated:
        del migrated[_LEGACY_SUBSCRIPTION_KEY]
        changed = True

    return migrated, changed


class ConfigStore:
    """Sole owner of the files under the account config directory."""

    def __init__(self, config_dir: str | Path) -> None:
        self.config_dir = Path(config_dir).expanduser()

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def publish_settings_path(self) -> Path:
        return self.config_dir / PUBLISH_SETTINGS_FILENAME

    @property
    def credential_path(self) -> Path:
        return self.config_dir / CREDENTIAL_FILENAME

    def _write_bytes(self, path: Path, data: bytes, *, owner_only: bool = False) -> None:
        tmp_path = _tmp_path_for(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600 if owner_only else 0o666)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            if owner_only:
                _chmod_owner_only(tmp_path)
            os.replace(tmp_path, path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StoreIoError(f"failed to write {path}: {exc}") from exc

    def _read_bytes(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreIoError(f"failed to read {path}: {exc}") from exc

    def read_config(self) -> PersistedConfig:
        raw = self._read_bytes(self.config_path)
        if raw is None or not raw.strip():
            return PersistedConfig()
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoreIoError(f"invalid config record in {self.config_path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StoreIoError(f"config record in {self.config_path} must be an object")

        payload, changed = migrate_legacy_config(payload)
        config = PersistedConfig.from_dict(payload)
        if changed:
            logger.info("migrated legacy config record at %s", self.config_path)
            self.write_config(config)
        return config

    def write_config(self, config: PersistedConfig) -> None:
        data = json.dumps(config.to_dict(), sort_keys=True, indent=2) + "\n"
        self._write_bytes(self.config_path, data.encode("utf-8"))

    def read_publish_settings(self) -> bytes | None:
        return self._read_bytes(self.publish_settings_path)

    def write_publish_settings(self, data: bytes) -> None:
        self._write_bytes(self.publish_settings_path, data, owner_only=True)

    def read_credential_material(self) -> bytes | None:
        return self._read_bytes(self.credential_path)

    def write_credential_material(self, pem: bytes) -> Path:
        self._write_bytes(self.credential_path, pem, owner_only=True)
        return self.credential_path

    def clear(self) -> bool:
        """Delete every stored file. Removal problems are logged, never raised."""
        removed = False
        for path in (self.config_path, self.credential_path, self.publish_settings_path):
            try:
                path.unlink()
                removed = True
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("could not remove %s: %s", path, exc)
            # Leftover from an interrupted write.
            try:
                _tmp_path_for(path).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("could not remove %s: %s", _tmp_path_for(path), exc)

        # Other tools may keep files here (cli.toml); only an empty directory goes.
        if self.config_dir.is_dir() and not any(self.config_dir.iterdir()):
            try:
                self.config_dir.rmdir()
            except OSError as exc:
                logger.warning("could not remove config directory %s: %s", self.config_dir, exc)
        return removed
