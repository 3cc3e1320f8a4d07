"""
Endpoint probe primitive.

Classifies an endpoint URL by scheme and performs exactly one reachability
test: a TCP connect for ``tcp://`` and a GET for ``http://``/``https://``.
Retry policy lives in :mod:`healthz.loop`.
"""

import logging
import socket
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import SplitResult, urlsplit

import requests
from urllib3.util import Timeout

from . import __version__
from .errors import (
    EndpointConnectionError,
    HealthzError,
    HTTPStatusError,
    InvalidEndpoint,
    UnsupportedSchemeError,
)

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("tcp", "http", "https")
USER_AGENT = f"healthz/{__version__}"


@dataclass
class Endpoint:
    """A parsed endpoint URL."""

    url: str
    scheme: str
    host: str
    port: Optional[int]

    @property
    def address(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass
class ProbeResult:
    """Outcome of a single probe."""

    endpoint: str
    ok: bool = False
    scheme: Optional[str] = None
    status_code: Optional[int] = None
    elapsed: float = 0.0
    error: Optional[HealthzError] = None

    @property
    def message(self) -> str:
        if self.ok:
            return "OK"
        return self.error.message if self.error else "unknown failure"


def parse_endpoint(url: str) -> Endpoint:
    """Split an endpoint URL without touching the network.

    Raises:
        InvalidEndpoint: for syntactically broken URLs.
        UnsupportedSchemeError: for schemes other than tcp, http and https.
    """
    if not url or not url.strip():
        raise InvalidEndpoint(url, "endpoint is empty")
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in url):
        raise InvalidEndpoint(url, "endpoint contains whitespace or control characters")
    if "://" not in url:
        raise InvalidEndpoint(url, "missing scheme, expected e.g. tcp://host:port")

    try:
        parts: SplitResult = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise InvalidEndpoint(url, str(e)) from e

    scheme = parts.scheme.lower()
    if not scheme:
        raise InvalidEndpoint(url, "missing scheme")
    if scheme not in SUPPORTED_SCHEMES:
        raise UnsupportedSchemeError(scheme)

    host = parts.hostname
    if not host:
        raise InvalidEndpoint(url, "missing host")
    if scheme == "tcp" and port is None:
        raise InvalidEndpoint(url, "tcp endpoints require a port")

    return Endpoint(url=url, scheme=scheme, host=host, port=port)


def _check_tcp(endpoint: Endpoint, timeout: float) -> None:
    try:
        conn = socket.create_connection((endpoint.host, endpoint.port), timeout=timeout)
    except socket.timeout as e:
        raise EndpointConnectionError(
            endpoint.url,
            f"dial tcp {endpoint.address}: i/o timeout",
            timed_out=True,
        ) from e
    except OSError as e:
        reason = e.strerror or str(e)
        raise EndpointConnectionError(
            endpoint.url, f"dial tcp {endpoint.address}: {reason}"
        ) from e
    conn.close()


def _check_http(endpoint: Endpoint, timeout: float) -> int:
    # Timeout bounds each socket operation; the deadline bounds the whole exchange
    deadline = time.monotonic() + timeout
    try:
        with requests.get(
            endpoint.url,
            timeout=Timeout(connect=timeout, read=timeout, total=timeout),
            stream=True,
            headers={"User-Agent": USER_AGENT},
        ) as response:
            status = response.status_code
    except requests.Timeout as e:
        raise EndpointConnectionError(
            endpoint.url, f"GET {endpoint.url}: timeout after {timeout:g}s", timed_out=True
        ) from e
    except requests.RequestException as e:
        raise EndpointConnectionError(endpoint.url, f"GET {endpoint.url}: {e}") from e

    if time.monotonic() > deadline:
        raise EndpointConnectionError(
            endpoint.url, f"GET {endpoint.url}: timeout after {timeout:g}s", timed_out=True
        )

    if not 200 <= status <= 299:
        raise HTTPStatusError(status)
    return status


def _dispatch(endpoint: Endpoint, timeout: float) -> Optional[int]:
    if endpoint.scheme == "tcp":
        _check_tcp(endpoint, timeout)
        return None
    return _check_http(endpoint, timeout)


def check_endpoint(url: str, timeout: float) -> Optional[int]:
    """Probe ``url`` once, raising a :class:`HealthzError` on failure.

    Returns the HTTP status code for http(s) endpoints and None for tcp.
    """
    return _dispatch(parse_endpoint(url), timeout)


def probe(url: str, timeout: float) -> ProbeResult:
    """Probe ``url`` once and report the outcome as a :class:`ProbeResult`."""
    result = ProbeResult(endpoint=url)
    start = time.monotonic()
    try:
        endpoint = parse_endpoint(url)
        result.scheme = endpoint.scheme
        result.status_code = _dispatch(endpoint, timeout)
        result.ok = True
    except HTTPStatusError as e:
        result.status_code = e.status_code
        result.error = e
    except HealthzError as e:
        result.error = e
    result.elapsed = time.monotonic() - start

    logger.debug(
        "probe %s: %s",
        "ok" if result.ok else "failed",
        result.message,
        extra={
            "endpoint": url,
            "status_code": result.status_code,
            "elapsed": round(result.elapsed, 3),
        },
    )
    return result
