"""Request-level errors raised by the query pipeline.

Only lookup and access failures are raised to the caller. Failures talking to
the external platform are reported inside ``QueryResult`` / ``ConnectionResult``
instead, see ``puod.connectors.base.exceptions``.
"""

from typing import Optional


class PuodError(Exception):
    """Base exception for puod request errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(PuodError):
    """Integration id is unknown, soft-deleted or inactive."""

    def __init__(self, integration_id: int, reason: Optional[str] = None):
        self.integration_id = integration_id
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Integration {integration_id} not found{detail}")


class UnauthorizedError(PuodError):
    """Caller's tenant context does not own the integration."""

    def __init__(self, integration_id: int):
        self.integration_id = integration_id
        super().__init__(f"Not allowed to access integration {integration_id}")
