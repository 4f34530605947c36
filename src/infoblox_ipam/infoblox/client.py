"""
Infoblox WAPI client.

A thin synchronous wrapper around the grid master's REST API (WAPI) built on
httpx, plus the credential and host configuration types it is constructed
from. Address allocation itself lives in ``infoblox_ipam.infoblox.addresses``;
the client exposes it as ``get_or_allocate_address`` / ``release_address``.

Known backend quirks handled here:
- Object references (``record:host/...``) are appended to the base URL
  verbatim; they are not valid relative URLs on their own.
- Searching host records with a network view or DNS view filter does not
  reliably match, so host records are looked up by name only.
- "Not found" is reported as HTTP 404, as an empty search result, or as a
  400 carrying ``AdmConDataNotFoundError``; all three become
  ``InfobloxNotFoundError``.
"""

from __future__ import annotations

import hashlib
import ipaddress
import os
import ssl
import tempfile
from dataclasses import dataclass, field
from typing import Any

import httpx

from infoblox_ipam.infoblox.addresses import (
    get_or_allocate_address,
    release_address,
)
from infoblox_ipam.infoblox.exceptions import (
    CredentialsError,
    InfobloxAuthError,
    InfobloxConnectionError,
    InfobloxError,
    InfobloxNotFoundError,
)
from infoblox_ipam.infoblox.models import HOST_RECORD_FIELDS, HostRecord
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

SECRET_KEY_USERNAME = "username"
SECRET_KEY_PASSWORD = "password"
SECRET_KEY_CLIENT_CERT = "clientCert"
SECRET_KEY_CLIENT_KEY = "clientKey"

# WAPI error class names that mean "no such object"
_NOT_FOUND_MARKERS = ("AdmConDataNotFoundError",)

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class AuthConfig:
    """Credentials for the WAPI: basic auth or a client certificate."""

    username: str = ""
    password: str = ""
    client_cert: bytes = b""
    client_key: bytes = b""

    def uses_basic_auth(self) -> bool:
        return bool(self.username and self.password)


@dataclass
class HostConfig:
    """Where and how to reach the grid master."""

    host: str
    port: str = "443"
    version: str = ""
    disable_tls_verification: bool = False
    custom_ca_path: str = ""
    default_network_view: str = ""
    default_dns_view: str = ""

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}/wapi/v{self.version}/"


@dataclass
class InfobloxConfig:
    host: HostConfig
    auth: AuthConfig = field(default_factory=AuthConfig)

    def fingerprint(self) -> str:
        """Digest of everything that requires a new connection when changed."""
        digest = hashlib.sha256()
        for part in (
            self.host.host,
            self.host.port,
            self.host.version,
            str(self.host.disable_tls_verification),
            self.host.custom_ca_path,
            self.auth.username,
            self.auth.password,
        ):
            digest.update(part.encode())
            digest.update(b"\0")
        digest.update(self.auth.client_cert)
        digest.update(self.auth.client_key)
        return digest.hexdigest()


def auth_config_from_secret_data(data: dict[str, bytes]) -> AuthConfig:
    """
    Build an AuthConfig from decoded secret data.

    The secret must contain username/password or clientCert/clientKey; when
    both pairs are complete the username/password pair is used.

    Raises:
        CredentialsError: If no complete pair is present.
    """
    username = data.get(SECRET_KEY_USERNAME, b"").decode()
    password = data.get(SECRET_KEY_PASSWORD, b"").decode()
    if username and password:
        return AuthConfig(username=username, password=password)

    client_cert = data.get(SECRET_KEY_CLIENT_CERT, b"")
    client_key = data.get(SECRET_KEY_CLIENT_KEY, b"")
    if client_cert and client_key:
        return AuthConfig(client_cert=client_cert, client_key=client_key)

    raise CredentialsError(
        "no usable pair of credentials found. "
        "provide either username/password or clientCert/clientKey"
    )


def _ssl_context(config: InfobloxConfig) -> ssl.SSLContext:
    if config.host.disable_tls_verification:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        context = ssl.create_default_context(
            cafile=config.host.custom_ca_path or None
        )

    if config.auth.client_cert and not config.auth.uses_basic_auth():
        # load_cert_chain only reads from files
        paths = []
        try:
            for blob in (config.auth.client_cert, config.auth.client_key):
                with tempfile.NamedTemporaryFile("wb", delete=False) as f:
                    f.write(blob)
                    paths.append(f.name)
            context.load_cert_chain(certfile=paths[0], keyfile=paths[1])
        finally:
            for path in paths:
                os.unlink(path)
    return context


# =============================================================================
# Client
# =============================================================================


class InfobloxClient:
    """
    Synchronous WAPI client for one grid master.

    Args:
        config: Host and credential configuration.
        transport: Optional httpx transport (tests inject a mock here).
        timeout: Request timeout in seconds.
        user_agent: Value of the User-Agent header.
    """

    def __init__(
        self,
        config: InfobloxConfig,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 60.0,
        user_agent: str = "cluster-api-ipam-provider-infoblox",
    ):
        self.config = config

        auth = None
        if config.auth.uses_basic_auth():
            auth = httpx.BasicAuth(config.auth.username, config.auth.password)

        self._base_url = config.host.base_url
        self._http = httpx.Client(
            auth=auth,
            verify=_ssl_context(config) if transport is None else True,
            timeout=timeout,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    @property
    def host_config(self) -> HostConfig:
        return self.config.host

    def close(self) -> None:
        self._http.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        try:
            response = self._http.request(
                method, f"{self._base_url}{path}", params=params, json=body
            )
        except httpx.RequestError as e:
            raise InfobloxConnectionError(
                f"{method} {path}: cannot reach {self.config.host.host}: {e}"
            ) from e

        if response.is_success:
            return response.json()

        status = response.status_code
        code = None
        text = response.text
        try:
            detail = response.json()
        except ValueError:
            detail = None
        if isinstance(detail, dict):
            code = detail.get("code")
            text = detail.get("text") or detail.get("Error") or text

        message = f"{method} {path}: HTTP {status}: {text}"
        if status in (401, 403):
            raise InfobloxAuthError(message, status_code=status, code=code)
        if status == 404 or any(m in response.text for m in _NOT_FOUND_MARKERS):
            raise InfobloxNotFoundError(message, status_code=status, code=code)
        raise InfobloxError(message, status_code=status, code=code)

    def search(
        self, objtype: str, params: dict[str, Any], return_fields: tuple[str, ...] = ()
    ) -> list[dict[str, Any]]:
        """Search objects of a type; an empty list is a valid result."""
        query = dict(params)
        if return_fields:
            query["_return_fields+"] = ",".join(return_fields)
        return self._request("GET", objtype, params=query)

    def get_object(self, ref: str, return_fields: tuple[str, ...] = ()) -> dict[str, Any]:
        params = {"_return_fields+": ",".join(return_fields)} if return_fields else None
        return self._request("GET", ref, params=params)

    def create_object(self, objtype: str, body: dict[str, Any]) -> str:
        return self._request("POST", objtype, body=body)

    def update_object(self, ref: str, body: dict[str, Any]) -> str:
        return self._request("PUT", ref, body=body)

    def delete_object(self, ref: str) -> str:
        return self._request("DELETE", ref)

    # -------------------------------------------------------------------------
    # Host records
    # -------------------------------------------------------------------------

    def get_host_record(self, hostname: str) -> HostRecord:
        """
        Fetch a host record by name only.

        Raises:
            InfobloxNotFoundError: If no record carries the name.
        """
        results = self.search("record:host", {"name": hostname}, HOST_RECORD_FIELDS)
        if not results:
            raise InfobloxNotFoundError(f"host record {hostname} not found")
        return HostRecord.model_validate(results[0])

    def get_host_record_by_ref(self, ref: str) -> HostRecord:
        return HostRecord.model_validate(self.get_object(ref, HOST_RECORD_FIELDS))

    # -------------------------------------------------------------------------
    # Existence checks
    # -------------------------------------------------------------------------

    def check_network_view_exists(self, view: str) -> bool:
        return bool(self.search("networkview", {"name": view}))

    def check_dns_view_exists(self, view: str) -> bool:
        return bool(self.search("view", {"name": view}))

    def check_network_exists(self, view: str, subnet: Network) -> bool:
        """A subnet counts as known when it is a network or a network container."""
        prefix = "ipv6" if subnet.version == 6 else ""
        params = {"network": str(subnet), "network_view": view}
        if self.search(f"{prefix}network", params):
            return True
        return bool(self.search(f"{prefix}networkcontainer", params))

    # -------------------------------------------------------------------------
    # Address allocation
    # -------------------------------------------------------------------------

    def get_or_allocate_address(
        self, view: str, dns_view: str, subnet: Network, hostname: str, zone: str
    ) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
        return get_or_allocate_address(self, view, dns_view, subnet, hostname, zone)

    def release_address(
        self, view: str, dns_view: str, subnet: Network, hostname: str
    ) -> None:
        release_address(self, view, dns_view, subnet, hostname)


def new_client(config: InfobloxConfig) -> InfobloxClient:
    """Default client factory used by the controllers."""
    from infoblox_ipam.config import config as controller_config

    return InfobloxClient(
        config,
        timeout=controller_config.WAPI_TIMEOUT_SECONDS,
        user_agent=controller_config.WAPI_USER_AGENT,
    )
