"""
Controller configuration for the Infoblox IPAM provider.

This module defines the configuration dataclass for the controller manager,
providing a centralized place for all configurable parameters.

Configuration can be modified at runtime by importing the global config
instance and updating its attributes before starting the manager.

Usage:
    from infoblox_ipam.config import config

    # Modify configuration before starting
    config.WATCH_NAMESPACE = "capi-system"
    config.LOG_LEVEL = LogLevel.DEBUG
"""

import os
from dataclasses import dataclass

from infoblox_ipam.models.enums import LogLevel


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class ControllerConfig:
    """
    Controller manager configuration.

    Attributes:
        WATCH_NAMESPACE: Namespace to watch; empty watches all namespaces.
        WATCH_FILTER: Value of the watch-filter label objects must carry.
        OPERATOR_NAMESPACE: Namespace holding the instance credential secrets.
        CLAIM_MAX_CONCURRENT_RECONCILES: Worker count for the claim controller.
        LOG_LEVEL: Logging verbosity level.
    """

    # -------------------------------------------------------------------------
    # Watch Configuration
    # -------------------------------------------------------------------------

    WATCH_NAMESPACE: str = ""
    WATCH_FILTER: str = ""
    KUBECONFIG: str = ""

    # Credential secrets referenced by InfobloxInstances are read from here
    OPERATOR_NAMESPACE: str = os.environ.get("NAMESPACE", "")

    # -------------------------------------------------------------------------
    # Reconcile Configuration
    # -------------------------------------------------------------------------

    # Claims share one remote inventory without a lock; allocation is a
    # read-then-append on the host record, so this must stay at 1
    CLAIM_MAX_CONCURRENT_RECONCILES: int = 1
    POOL_MAX_CONCURRENT_RECONCILES: int = 1

    # Per-item exponential backoff for failed reconciles
    BACKOFF_BASE_SECONDS: float = 0.005
    BACKOFF_MAX_SECONDS: float = 1000.0

    # Seconds before a watch stream is restarted by the server
    WATCH_TIMEOUT_SECONDS: int = 300

    # -------------------------------------------------------------------------
    # Infoblox Configuration
    # -------------------------------------------------------------------------

    WAPI_TIMEOUT_SECONDS: float = 60.0
    WAPI_USER_AGENT: str = "cluster-api-ipam-provider-infoblox"

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO


# =============================================================================
# Global Instance
# =============================================================================

# Global config instance - modify before manager startup
config = ControllerConfig()
