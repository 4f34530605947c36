"""Data models for Infoblox WAPI objects."""

from __future__ import annotations

import ipaddress
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

HOST_RECORD_FIELDS = (
    "name",
    "view",
    "zone",
    "network_view",
    "configure_for_dns",
    "ipv4addrs",
    "ipv6addrs",
)


class WAPIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wapi(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class HostRecordIPv4Addr(WAPIModel):
    ref: str | None = Field(default=None, alias="_ref")
    ipv4addr: str | None = None
    host: str | None = None
    configure_for_dhcp: bool | None = None
    mac: str | None = None

    @property
    def address(self) -> str | None:
        return self.ipv4addr


class HostRecordIPv6Addr(WAPIModel):
    ref: str | None = Field(default=None, alias="_ref")
    ipv6addr: str | None = None
    host: str | None = None
    configure_for_dhcp: bool | None = None
    duid: str | None = None

    @property
    def address(self) -> str | None:
        return self.ipv6addr


class HostRecord(WAPIModel):
    """
    A ``record:host`` object: one hostname bound to IPv4 and IPv6 addresses.

    ``ref`` is empty until the record exists on the grid.
    """

    ref: str | None = Field(default=None, alias="_ref")
    name: str
    view: str | None = None
    zone: str | None = None
    network_view: str | None = None
    configure_for_dns: bool | None = None
    ipv4addrs: list[HostRecordIPv4Addr] = Field(default_factory=list)
    ipv6addrs: list[HostRecordIPv6Addr] = Field(default_factory=list)

    def addrs_for(
        self, subnet: ipaddress.IPv4Network | ipaddress.IPv6Network
    ) -> list[HostRecordIPv4Addr] | list[HostRecordIPv6Addr]:
        """The address collection of the subnet's family."""
        return self.ipv4addrs if subnet.version == 4 else self.ipv6addrs

    def is_empty(self) -> bool:
        return not self.ipv4addrs and not self.ipv6addrs

    def to_wapi(self) -> dict[str, Any]:
        # _ref is the URL path, never part of the body
        body = super().to_wapi()
        body.pop("_ref", None)
        return body
