"""
healthz: TCP/HTTP(S) endpoint health checks

Probes a network endpoint once or in a retrying loop with capped exponential
backoff. Intended for deployment and readiness gating scripts that need to
block until a dependency is reachable.
"""

__version__ = "1.0.0"
__author__ = "healthz maintainers"
__description__ = "Test if a TCP/HTTP(S) endpoint is healthy"
