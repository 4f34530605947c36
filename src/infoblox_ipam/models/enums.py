"""
Enumeration types for the Infoblox IPAM provider.

This module defines the enumeration types used throughout the provider for
condition reporting and configuration options.
"""

from enum import Enum


# =============================================================================
# Condition Enums
# =============================================================================


class ConditionType(str, Enum):
    """Condition types reported on claims, pools and instances."""

    READY = "Ready"


class ConditionStatus(str, Enum):
    """Tri-state condition status, as used by Kubernetes conditions."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(str, Enum):
    """
    Machine-readable reasons surfaced on failing or succeeding conditions.

    Failure reasons double as the failure classification used by the
    reconcilers:
        - AUTHENTICATION_FAILED: credentials invalid or rejected
        - INSTANCE_UNAVAILABLE: the instance or its secret could not be read
        - NETWORK_VIEW_NOT_FOUND: network view missing on the instance
        - DNS_VIEW_NOT_FOUND: DNS view missing on the instance
        - NETWORK_NOT_FOUND: a pool subnet is not a known network
        - ADDRESS_ALLOCATION_FAILED: every subnet of the pool failed
        - POOL_NOT_READY: the referenced pool cannot serve allocations yet
    """

    AUTHENTICATION_FAILED = "AuthenticationFailed"
    INSTANCE_UNAVAILABLE = "InstanceUnavailable"
    NETWORK_VIEW_NOT_FOUND = "NetworkViewNotFound"
    DNS_VIEW_NOT_FOUND = "DNSViewNotFound"
    NETWORK_NOT_FOUND = "NetworkNotFound"
    ADDRESS_ALLOCATION_FAILED = "AddressAllocationFailed"
    POOL_NOT_READY = "PoolNotReady"
    READY = "Ready"


class ConditionSeverity(str, Enum):
    """Severity attached to a false condition."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels for the controller.

    Levels (from most to least verbose):
        - FULL: Complete trace with local variables in tracebacks
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
