"""Provider-level exception classes."""


class IPAMError(Exception):
    """Base exception for address management."""

    pass


class ConfigurationError(IPAMError):
    """
    Operator input is unusable (credentials, CIDRs, references).

    Retrying without a change to the referenced objects cannot succeed, so
    the runtime waits for the next event instead of backing off.
    """

    pass


class HostnameResolutionError(IPAMError):
    """No hostname could be derived from the claim's owner references."""

    pass


class AddressAllocationFailedError(IPAMError):
    """Every subnet of a pool failed to yield an address."""

    def __init__(self, pool: str, cause: Exception | None = None):
        self.pool = pool
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"could not allocate address from pool {pool}{detail}")


class AllocationInconsistentError(IPAMError):
    """The backend accepted an allocation but the re-read does not show it."""

    def __init__(self, hostname: str, subnet: str):
        self.hostname = hostname
        self.subnet = subnet
        super().__init__(
            f"host record {hostname} does not contain an address in {subnet} "
            f"after allocation"
        )


class PoolInUseError(IPAMError):
    """A pool marked for deletion is still referenced by claims."""

    def __init__(self, pool: str, claims: list[str]):
        self.pool = pool
        self.claims = claims
        super().__init__(
            f"pool {pool} still has {len(claims)} claim(s) allocated; "
            f"cannot delete the pool until they have been removed"
        )


class InstanceUnavailableError(IPAMError):
    """The InfobloxInstance or its credentials secret could not be read."""

    def __init__(self, instance: str, reason: str):
        self.instance = instance
        self.reason = reason
        super().__init__(f"instance {instance}: {reason}")


class AddressReleaseFailedError(IPAMError):
    """At least one subnet of a pool failed to release the claim's address."""

    def __init__(self, pool: str, cause: Exception):
        self.pool = pool
        self.cause = cause
        super().__init__(f"unable to release address from pool {pool}: {cause}")
