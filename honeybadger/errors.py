"""
HoneyBadger Client - Error Taxonomy

Every public ApiClient operation either returns a typed payload or raises
exactly one of the ClientError subclasses below.
"""


class ClientError(Exception):
    """Base exception for API client operations."""
    pass


class InvalidResponseError(ClientError):
    """The transport did not produce a usable HTTP response."""

    def __init__(self, message: str = "Invalid response from server"):
        super().__init__(message)


class UnauthorizedError(ClientError):
    """The server rejected the held credentials (401/403)."""

    def __init__(self, message: str = "Unauthorized - Please login again"):
        super().__init__(message)


class ServerError(ClientError):
    """The server answered with a non-success status."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DecodingError(ClientError):
    """A success response body did not match the expected payload."""

    def __init__(self, message: str = "Failed to decode response"):
        super().__init__(message)
