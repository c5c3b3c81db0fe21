"""Domain exceptions raised by services.

Routers let these propagate; the global handlers in
``campus.middleware.error_handler`` turn them into JSON responses.
"""

from __future__ import annotations


class NotFoundError(LookupError):
    """Resource does not exist or belongs to another campus (404)."""


class AccessDeniedError(PermissionError):
    """Caller is authenticated but not allowed to touch the resource (403)."""


class ConflictError(ValueError):
    """Request conflicts with existing state, e.g. duplicate enrollment (409)."""


class UpstreamServiceError(RuntimeError):
    """A third-party provider (video, storage) failed or rejected the call (502)."""
