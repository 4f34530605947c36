"""
Infoblox WAPI integration.

Provides:
- WAPI client with credential and TLS handling
- Host record address allocation and release
- Per-instance client registry
"""

from infoblox_ipam.infoblox.addresses import (
    get_or_allocate_address,
    next_available_ip_func,
    release_address,
    to_dns_view,
)
from infoblox_ipam.infoblox.client import (
    AuthConfig,
    HostConfig,
    InfobloxClient,
    InfobloxConfig,
    auth_config_from_secret_data,
    new_client,
)
from infoblox_ipam.infoblox.exceptions import (
    CredentialsError,
    InfobloxAuthError,
    InfobloxConnectionError,
    InfobloxError,
    InfobloxNotFoundError,
)
from infoblox_ipam.infoblox.manager import ClientManager
from infoblox_ipam.infoblox.models import HostRecord, HostRecordIPv4Addr, HostRecordIPv6Addr

__all__ = [
    # Client
    "InfobloxClient",
    "InfobloxConfig",
    "HostConfig",
    "AuthConfig",
    "auth_config_from_secret_data",
    "new_client",
    "ClientManager",
    # Allocation
    "get_or_allocate_address",
    "release_address",
    "next_available_ip_func",
    "to_dns_view",
    # Models
    "HostRecord",
    "HostRecordIPv4Addr",
    "HostRecordIPv6Addr",
    # Exceptions
    "InfobloxError",
    "InfobloxNotFoundError",
    "InfobloxAuthError",
    "InfobloxConnectionError",
    "CredentialsError",
]
