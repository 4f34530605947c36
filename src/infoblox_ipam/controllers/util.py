"""Helpers shared by the claim and pool controllers."""

from __future__ import annotations

from infoblox_ipam.exceptions import ConfigurationError, InstanceUnavailableError
from infoblox_ipam.infoblox import (
    CredentialsError,
    HostConfig,
    InfobloxClient,
    InfobloxConfig,
    auth_config_from_secret_data,
    to_dns_view,
)
from infoblox_ipam.infoblox.manager import ClientManager
from infoblox_ipam.kube.client import ObjectClient
from infoblox_ipam.kube.exceptions import KubeError
from infoblox_ipam.models.resources import InfobloxInstance, Secret


def get_client_for_instance(
    client: ObjectClient,
    clients: ClientManager,
    name: str,
    secret_namespace: str,
) -> InfobloxClient:
    """
    Build (or reuse) the WAPI client for an InfobloxInstance.

    Args:
        client: API server client.
        clients: Registry the WAPI client is cached in.
        name: Name of the cluster scoped InfobloxInstance.
        secret_namespace: Namespace of the instance's credentials secret.

    Raises:
        InstanceUnavailableError: The instance or its secret cannot be read.
        ConfigurationError: The secret holds no usable credentials.
    """
    try:
        instance = client.get(InfobloxInstance, name)
    except KubeError as e:
        raise InstanceUnavailableError(name, f"failed to fetch instance: {e}") from e

    secret_name = instance.spec.credentials_secret_ref.name
    try:
        secret = client.get(Secret, secret_name, secret_namespace)
    except KubeError as e:
        raise InstanceUnavailableError(name, f"failed to fetch secret: {e}") from e

    try:
        auth = auth_config_from_secret_data(secret.decoded_data())
    except CredentialsError as e:
        raise ConfigurationError(
            f"credentials secret {secret_namespace}/{secret_name} is invalid: {e}"
        ) from e

    config = InfobloxConfig(
        host=HostConfig(
            host=instance.spec.host,
            port=instance.spec.port or "443",
            version=instance.spec.wapi_version,
            disable_tls_verification=instance.spec.disable_tls_verification,
            custom_ca_path=instance.spec.custom_ca_path,
            default_network_view=instance.spec.default_network_view,
            default_dns_view=instance.spec.default_dns_view,
        ),
        auth=auth,
    )
    try:
        return clients.get_or_create(name, config)
    except OSError as e:
        # Unreadable CA bundle or a broken client certificate
        raise ConfigurationError(f"cannot set up TLS for instance {name}: {e}") from e


def determine_dns_view(
    pool_dns_view: str, instance_default_dns_view: str, network_view: str
) -> str:
    """
    DNS view a pool allocates in.

    Priority: the pool's own DNS view, then the instance default, then the
    view the grid pairs with the network view.
    """
    if pool_dns_view:
        return pool_dns_view
    if instance_default_dns_view:
        return instance_default_dns_view
    return to_dns_view(network_view) or "default"
