"""
Host record address allocation.

Every hostname maps to exactly one ``record:host`` on the grid. Allocating an
address in a subnet appends an entry to that record; releasing it removes the
entry, and the record goes away with its last address.

Known backend quirks:
- The grid does not reliably keep ``network_view``/``view`` on host records,
  so lookups go by name only and both fields are stamped again right before
  every write.
- ``zone``, ``network_view`` and the per-address ``host`` field are rejected
  on update and are cleared first.
- Hostnames must be FQDNs whenever DNS is enabled on the record.
"""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING

from infoblox_ipam.exceptions import AllocationInconsistentError
from infoblox_ipam.infoblox.exceptions import InfobloxError, InfobloxNotFoundError
from infoblox_ipam.infoblox.models import (
    HostRecord,
    HostRecordIPv4Addr,
    HostRecordIPv6Addr,
)
from infoblox_ipam.utils.logger import get_logger

if TYPE_CHECKING:
    from infoblox_ipam.infoblox.client import InfobloxClient

logger = get_logger(__name__)

Network = ipaddress.IPv4Network | ipaddress.IPv6Network
Address = ipaddress.IPv4Address | ipaddress.IPv6Address


# =============================================================================
# Helpers
# =============================================================================


def to_dns_view(view: str) -> str | None:
    """
    DNS view the grid pairs with a network view.

    The grid names the DNS view of a non-default network view
    ``default.<network view>``.
    """
    if not view:
        return None
    if view == "default":
        return view
    return f"default.{view}"


def next_available_ip_func(subnet: Network, view: str) -> str:
    """Server-side directive asking the grid for the next free address."""
    return f"func:nextavailableip:{subnet},{view}"


def find_address_in_subnet(record: HostRecord, subnet: Network) -> Address | None:
    """First address of the record's matching family that lies in ``subnet``."""
    for entry in record.addrs_for(subnet):
        if entry.address is None:
            continue
        try:
            addr = ipaddress.ip_address(entry.address)
        except ValueError:
            # Placeholders and garbage are not addresses
            continue
        if addr in subnet:
            return addr
    return None


def prepare_for_update(record: HostRecord) -> None:
    """Clear the fields the grid refuses to accept on update."""
    record.zone = None
    record.network_view = None
    if record.ipv4addrs is None:
        record.ipv4addrs = []
    if record.ipv6addrs is None:
        record.ipv6addrs = []
    for entry in (*record.ipv4addrs, *record.ipv6addrs):
        entry.host = None


def _get_or_new_host_record(
    client: InfobloxClient, view: str, dns_view: str, hostname: str, zone: str
) -> HostRecord:
    try:
        return client.get_host_record(hostname)
    except InfobloxNotFoundError:
        pass

    record = HostRecord(
        name=hostname,
        network_view=view,
        configure_for_dns=bool(zone),
    )
    if zone:
        record.view = dns_view or None
    return record


def _create_or_update(client: InfobloxClient, record: HostRecord) -> HostRecord:
    if record.ref is None:
        logger.info(f"Creating Infoblox host record {record.name}")
        ref = client.create_object("record:host", record.to_wapi())
    else:
        prepare_for_update(record)
        logger.info(f"Updating Infoblox host record {record.name}")
        ref = client.update_object(record.ref, record.to_wapi())

    logger.debug(f"Fetching Infoblox host record {record.name}")
    return client.get_host_record_by_ref(ref)


# =============================================================================
# Allocation
# =============================================================================


def get_or_allocate_address(
    client: InfobloxClient,
    view: str,
    dns_view: str,
    subnet: Network,
    hostname: str,
    zone: str,
) -> Address:
    """
    Return the hostname's address in ``subnet``, allocating one if needed.

    The existing record is always checked first, so calling this repeatedly
    for the same hostname and subnet returns the same address without
    touching the grid.

    Args:
        client: Connected WAPI client.
        view: Network view the subnet belongs to.
        dns_view: DNS view for the record (only used when ``zone`` is set).
        subnet: Subnet to allocate from.
        hostname: Host record name; a FQDN when ``zone`` is set.
        zone: DNS zone; empty disables DNS on new records.

    Returns:
        The address inside ``subnet``.

    Raises:
        InfobloxError: On any backend failure.
        AllocationInconsistentError: The write succeeded but the re-read
            record still has no address in ``subnet``.
    """
    try:
        record = _get_or_new_host_record(client, view, dns_view, hostname, zone)
    except InfobloxError as e:
        raise type(e)(
            f"failed to get or create Infoblox host record {hostname}: {e}",
            status_code=e.status_code,
            code=e.code,
        ) from e

    addr = find_address_in_subnet(record, subnet)
    if addr is not None:
        return addr

    directive = next_available_ip_func(subnet, view)
    if subnet.version == 4:
        record.ipv4addrs.append(
            HostRecordIPv4Addr(ipv4addr=directive, configure_for_dhcp=False)
        )
    else:
        record.ipv6addrs.append(
            HostRecordIPv6Addr(ipv6addr=directive, configure_for_dhcp=False)
        )

    # Stamped again on every write, the grid drops both across round-trips
    record.network_view = view
    record.view = dns_view or None

    try:
        record = _create_or_update(client, record)
    except InfobloxError as e:
        raise type(e)(
            f"failed to create or update Infoblox host record {hostname}: {e}",
            status_code=e.status_code,
            code=e.code,
        ) from e

    addr = find_address_in_subnet(record, subnet)
    if addr is None:
        raise AllocationInconsistentError(hostname, str(subnet))

    logger.info(f"Allocated {addr} in {subnet} for {hostname}")
    return addr


def release_address(
    client: InfobloxClient,
    view: str,
    dns_view: str,
    subnet: Network,
    hostname: str,
) -> None:
    """
    Drop the hostname's address in ``subnet``.

    A missing record or a record with no address in the subnet is a no-op.
    When the last address goes, the whole record is deleted.
    """
    try:
        record = client.get_host_record(hostname)
    except InfobloxNotFoundError:
        logger.debug(f"Host record {hostname} not found, nothing to release")
        return

    entries = record.addrs_for(subnet)
    for i, entry in enumerate(entries):
        if entry.address is None:
            continue
        try:
            addr = ipaddress.ip_address(entry.address)
        except ValueError:
            continue
        if addr in subnet:
            del entries[i]
            break
    else:
        logger.debug(f"Host record {hostname} has no address in {subnet}")
        return

    record.network_view = view
    record.view = dns_view or None

    if record.is_empty():
        logger.info(f"Deleting Infoblox host record {hostname}")
        try:
            client.delete_object(record.ref)
        except InfobloxError as e:
            raise type(e)(
                f"failed to delete Infoblox host record {hostname}: {e}",
                status_code=e.status_code,
                code=e.code,
            ) from e
        return

    prepare_for_update(record)
    logger.info(f"Updating Infoblox host record {hostname}, released {addr}")
    try:
        client.update_object(record.ref, record.to_wapi())
    except InfobloxError as e:
        raise type(e)(
            f"failed to update Infoblox host record {hostname}: {e}",
            status_code=e.status_code,
            code=e.code,
        ) from e
