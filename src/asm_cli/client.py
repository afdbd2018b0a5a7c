"""Service-management transport authenticated with the management certificate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from defusedxml import DefusedXmlException, ElementTree

from asm_cli.errors import ServiceManagementError

DEFAULT_ENDPOINT = "https://management.core.windows.net"
DEFAULT_API_VERSION = "2012-03-01"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: Any, name: str) -> str | None:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return None


def parse_error_body(text: str) -> tuple[str | None, str | None]:
    """Extract (code, message) from an XML ``<Error>`` body."""
    try:
        root = ElementTree.fromstring(text)
    except (ElementTree.ParseError, DefusedXmlException):
        return None, None
    if _local_name(root.tag) != "Error":
        return None, None
    return _child_text(root, "Code"), _child_text(root, "Message")


def parse_service_resources(text: str) -> list[dict[str, str]]:
    try:
        root = ElementTree.fromstring(text)
    except (ElementTree.ParseError, DefusedXmlException) as exc:
        raise ServiceManagementError(f"invalid service list response: {exc}") from exc

    resources: list[dict[str, str]] = []
    for element in root.iter():
        if _local_name(element.tag) != "ServiceResource":
            continue
        resources.append(
            {
                "type": _child_text(element, "Type") or "",
                "state": _child_text(element, "State") or "",
            }
        )
    return resources


@dataclass
class ServiceManagementClient:
    endpoint: str
    cert_path: str
    timeout: float = 30.0
    retries: int = 2
    api_version: str = DEFAULT_API_VERSION

    def __post_init__(self) -> None:
        try:
            import requests
            from requests.adapters import HTTPAdapter
            from urllib3.util.retry import Retry
        except Exception as exc:  # pragma: no cover
            raise ServiceManagementError(f"requests stack unavailable: {exc}") from exc

        self._session = requests.Session()
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(500, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("GET", "PUT"),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._session.cert = str(self.cert_path)
        self._session.headers.update({"x-ms-version": self.api_version})

    def _url(self, path: str) -> str:
        return f"{self.endpoint.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, *, params: dict | None = None) -> str:
        try:
            response = self._session.request(
                method,
                self._url(path),
                params=params,
                timeout=self.timeout,
            )
        except Exception as exc:  # pragma: no cover
            raise ServiceManagementError(str(exc), code="ConnectionError") from exc

        if response.status_code >= 400:
            code, message = parse_error_body(response.text)
            if not message:
                message = f"service management request failed: {response.status_code} {response.text}"
            raise ServiceManagementError(message, code=code, status_code=response.status_code)
        return response.text

    def list_resource_types(self, subscription_id: str, names: list[str]) -> list[dict[str, str]]:
        body = self._request(
            "GET",
            f"/{subscription_id}/services",
            params={"service": ",".join(names), "action": "list"},
        )
        return parse_service_resources(body)

    def register_resource_provider(self, subscription_id: str, name: str) -> None:
        self._request(
            "PUT",
            f"/{subscription_id}/services",
            params={"service": name, "action": "register"},
        )


__all__ = ["ServiceManagementClient", "DEFAULT_ENDPOINT"]
