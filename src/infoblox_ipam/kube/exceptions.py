"""API server related exception classes."""


class KubeError(Exception):
    """Base exception for API server operations."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(KubeError):
    """Requested object does not exist."""

    def __init__(self, kind: str, name: str, namespace: str | None = None):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        key = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {key} not found", status_code=404)


class ConflictError(KubeError):
    """Object already exists or was modified concurrently."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


def is_not_found(error: BaseException | None) -> bool:
    """Check whether an error (or its cause chain) is a NotFoundError."""
    while error is not None:
        if isinstance(error, NotFoundError):
            return True
        error = error.__cause__
    return False
