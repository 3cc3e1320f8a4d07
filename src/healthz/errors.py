"""Error taxonomy for endpoint probes."""


class HealthzError(Exception):
    """Base class for all probe failures."""

    retryable = True

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidEndpoint(HealthzError):
    retryable = False

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Invalid endpoint {endpoint!r}: {reason}")


class UnsupportedSchemeError(HealthzError):
    retryable = False

    def __init__(self, scheme: str):
        self.scheme = scheme
        super().__init__(f"Unsupported URL scheme: {scheme}")


class EndpointConnectionError(HealthzError):
    """Transport-level failure: refused, unreachable, DNS or timeout."""

    def __init__(self, endpoint: str, detail: str, timed_out: bool = False):
        self.endpoint = endpoint
        self.detail = detail
        self.timed_out = timed_out
        super().__init__(detail)


class HTTPStatusError(HealthzError):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


class ConfigurationError(ValueError):
    """Raised for out-of-range probe or backoff settings."""
