"""
Middleware components for the Scramble tracker server.

Provides:
- RequestContextMiddleware: X-Request-ID propagation and per-request
  logging context
"""

from .context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
]
