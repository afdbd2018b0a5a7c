"""Command-line interface for asm."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence

from asm_cli.cli.config import CLISettings, SettingsError, load_cli_settings
from asm_cli.client import ServiceManagementClient
from asm_cli.errors import (
    AsmCliError,
    CertificateFormatError,
    InvalidPublishSettingsError,
    ServiceManagementError,
    StoreIoError,
    UnknownSubscriptionError,
    XmlParseError,
)
from asm_cli.ingestion import CredentialIngestion
from asm_cli.registration import RegistrationStatus, ResourceTypeRegistry
from asm_cli.store import ConfigStore
from asm_cli.subscriptions import SubscriptionResolver

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_NETWORK_ERROR = 2

DEFAULT_RESOURCE_TYPES = ("website", "mobileservice", "servicebus", "sqlserver")

_CERTIFICATE_FIELD_RE = re.compile(r'(?i)(ManagementCertificate\s*[=:]\s*"?)([^",\s]+)')
_LONG_BASE64_RE = re.compile(r"[A-Za-z0-9+/]{64,}={0,2}")


def _cli_version() -> str:
    try:
        return pkg_version("asm-cli")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="asm")
    parser.add_argument("--version", action="version", version=f"asm {_cli_version()}")
    parser.add_argument(
        "--settings",
        default=None,
        help="Path to CLI settings TOML (default: ~/.asm/cli.toml)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr")

    sub = parser.add_subparsers(dest="command", required=True)

    version = sub.add_parser("version", help="Show CLI version")
    version.add_argument("--json", action="store_true")

    account = sub.add_parser("account", help="Manage imported subscriptions and credentials")
    account_sub = account.add_subparsers(dest="account_command", required=True)

    account_import = account_sub.add_parser(
        "import",
        help="Import a publish-settings file, a PEM key/cert pair or a PFX file",
    )
    account_import.add_argument("file", help="Path to the credential file")
    account_import.add_argument(
        "--skipregister",
        action="store_true",
        help="Do not register known resource types for the imported subscription",
    )
    account_import.add_argument("--json", action="store_true")

    account_set = account_sub.add_parser("set", help="Make a subscription current")
    account_set.add_argument("subscription", help="Subscription name or id")

    account_list = account_sub.add_parser("list", help="List imported subscriptions")
    account_list.add_argument("--json", action="store_true")

    account_show = account_sub.add_parser("show", help="Show the current account configuration")
    account_show.add_argument("--json", action="store_true")

    account_sub.add_parser("clear", help="Remove imported settings and credentials")

    return parser


def _configure_logging(settings: CLISettings, *, verbose: bool, stderr) -> None:
    package_logger = logging.getLogger("asm_cli")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    handler = logging.StreamHandler(stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else settings.log_level)


def _sanitize_error_text(value: str) -> str:
    redacted = _CERTIFICATE_FIELD_RE.sub(r"\1[REDACTED]", value)
    return _LONG_BASE64_RE.sub("[REDACTED]", redacted)


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _build_registry(settings: CLISettings) -> ResourceTypeRegistry:
    registry = ResourceTypeRegistry(DEFAULT_RESOURCE_TYPES)
    registry.extend(settings.resource_types)
    return registry


def _client_factory(settings: CLISettings):
    def build(endpoint: str, cert_path: str) -> ServiceManagementClient:
        return ServiceManagementClient(
            endpoint=endpoint,
            cert_path=cert_path,
            timeout=settings.request_timeout,
            retries=settings.retries,
        )

    return build


def _run_version(*, as_json: bool, stdout) -> int:
    if as_json:
        print(json.dumps({"cli": "asm", "version": _cli_version()}, sort_keys=True), file=stdout)
    else:
        print(f"asm {_cli_version()}", file=stdout)
    return EXIT_SUCCESS


def _print_local_error(stderr, exc: AsmCliError) -> int:
    if isinstance(exc, (XmlParseError, InvalidPublishSettingsError)):
        return _print_error(stderr, "publish settings error", str(exc), code=EXIT_VALIDATION_ERROR)
    if isinstance(exc, CertificateFormatError):
        return _print_error(stderr, "certificate error", str(exc), code=EXIT_VALIDATION_ERROR)
    if isinstance(exc, UnknownSubscriptionError):
        return _print_error(stderr, "subscription error", str(exc), code=EXIT_VALIDATION_ERROR)
    if isinstance(exc, StoreIoError):
        return _print_error(stderr, "store error", str(exc), code=EXIT_VALIDATION_ERROR)
    if isinstance(exc, ServiceManagementError):
        return _print_error(stderr, "service error", str(exc), code=EXIT_NETWORK_ERROR)
    return _print_error(stderr, "error", str(exc), code=EXIT_VALIDATION_ERROR)


def _run_account_import(*, args, settings: CLISettings, store: ConfigStore, stdout, stderr) -> int:
    ingestion = CredentialIngestion(
        store,
        _build_registry(settings),
        _client_factory(settings),
        default_endpoint=settings.default_endpoint,
    )
    try:
        result = ingestion.import_file(args.file, skip_register=args.skipregister)
    except AsmCliError as exc:
        return _print_local_error(stderr, exc)

    registration = result.registration
    if registration is not None and registration.failures:
        print(
            f"warning: {len(registration.failures)} resource type(s) could not be registered",
            file=stderr,
        )

    payload = {
        "format": result.format,
        "subscriptions": [s.id for s in result.subscriptions],
        "current_subscription": result.current_subscription,
        "registered": [
            o.resource_type
            for o in (registration.outcomes if registration else [])
            if o.status is RegistrationStatus.REGISTERED
        ],
        "registration_errors": registration.error_summary() if registration else None,
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    if result.format != "xml":
        print(f"imported {result.format} credential: {store.credential_path}", file=stdout)
        return EXIT_SUCCESS
    print(f"imported subscriptions: {len(result.subscriptions)}", file=stdout)
    if result.current_subscription:
        print(f"current subscription: {result.current_subscription}", file=stdout)
    if payload["registered"]:
        print(f"registered resource types: {', '.join(payload['registered'])}", file=stdout)
    return EXIT_SUCCESS


def _run_account_set(*, args, store: ConfigStore, stdout, stderr) -> int:
    resolver = SubscriptionResolver(store)
    try:
        subscription = resolver.set_current(args.subscription)
    except AsmCliError as exc:
        return _print_local_error(stderr, exc)
    print(f"current subscription: {subscription.name} ({subscription.id})", file=stdout)
    return EXIT_SUCCESS


def _run_account_list(*, args, store: ConfigStore, stdout, stderr) -> int:
    resolver = SubscriptionResolver(store)
    try:
        subscriptions = resolver.list_subscriptions()
        current = resolver.current()
    except AsmCliError as exc:
        return _print_local_error(stderr, exc)

    rows = [
        {"id": s.id, "name": s.name, "current": s.id == current}
        for s in subscriptions
    ]
    if args.json:
        print(json.dumps(rows, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    if not rows:
        print("no subscriptions imported", file=stdout)
        return EXIT_SUCCESS
    for row in rows:
        marker = "*" if row["current"] else " "
        print(f"{marker} {row['name']}  {row['id']}", file=stdout)
    return EXIT_SUCCESS


def _run_account_show(*, args, settings: CLISettings, store: ConfigStore, stdout, stderr) -> int:
    try:
        config = store.read_config()
    except AsmCliError as exc:
        return _print_local_error(stderr, exc)

    payload = {
        "config_dir": str(store.config_dir),
        "endpoint": config.endpoint or settings.default_endpoint,
        "subscription": config.subscription,
        "has_credential": store.credential_path.exists(),
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print(f"config_dir: {payload['config_dir']}", file=stdout)
    print(f"endpoint: {payload['endpoint']}", file=stdout)
    print(f"subscription: {payload['subscription'] or '(none)'}", file=stdout)
    print(f"has_credential: {str(payload['has_credential']).lower()}", file=stdout)
    return EXIT_SUCCESS


def _run_account_clear(*, store: ConfigStore, stdout) -> int:
    if store.clear():
        print("account settings cleared", file=stdout)
    else:
        print("nothing to clear", file=stdout)
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None, *, stdout=sys.stdout, stderr=sys.stderr) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_cli_settings(args.settings)
    except SettingsError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    _configure_logging(settings, verbose=args.verbose, stderr=stderr)

    if args.command == "version":
        return _run_version(as_json=args.json, stdout=stdout)

    store = ConfigStore(settings.config_dir)

    if args.command == "account":
        if args.account_command == "import":
            return _run_account_import(
                args=args, settings=settings, store=store, stdout=stdout, stderr=stderr
            )
        if args.account_command == "set":
            return _run_account_set(args=args, store=store, stdout=stdout, stderr=stderr)
        if args.account_command == "list":
            return _run_account_list(args=args, store=store, stdout=stdout, stderr=stderr)
        if args.account_command == "show":
            return _run_account_show(
                args=args, settings=settings, store=store, stdout=stdout, stderr=stderr
            )
        if args.account_command == "clear":
            return _run_account_clear(store=store, stdout=stdout)

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
