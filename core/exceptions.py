class DashboardError(Exception):
    """Base exception for all dashboard errors."""


class UpstreamUnavailableError(DashboardError):
    """Raised when an upstream service cannot be reached or rejects the request."""


class CommerceAPIError(UpstreamUnavailableError):
    """Raised for network, auth or non-2xx failures against the commerce platform."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class WarehouseError(UpstreamUnavailableError):
    """Raised when the warehouse query fails on every available path."""
