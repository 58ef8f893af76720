"""
Error taxonomy shared by the gateway and every controller.
"""
from __future__ import annotations

from typing import Optional


class ConsoleError(RuntimeError):
    pass


class AuthExpired(ConsoleError):
    """The backend rejected the credential. The session is already cleared when this is raised."""


class RequestFailed(ConsoleError):
    """Any other non-2xx answer, timeout or transport failure."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ValidationRejected(RequestFailed):
    """The backend refused a submitted payload (400/422)."""


class NotFound(RequestFailed):
    """The requested record does not exist."""
