"""Infoblox WAPI exception classes."""


class InfobloxError(Exception):
    """Base exception for Infoblox operations."""

    def __init__(
        self, message: str, status_code: int | None = None, code: str | None = None
    ):
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class InfobloxNotFoundError(InfobloxError):
    """Object (host record, view, network, reference) does not exist."""

    pass


class InfobloxAuthError(InfobloxError):
    """Credentials were rejected by the grid master."""

    pass


class InfobloxConnectionError(InfobloxError):
    """The grid master could not be reached."""

    pass


class CredentialsError(InfobloxError):
    """Secret data does not contain a usable credential pair."""

    pass
