from __future__ import annotations

import logging
from typing import Any, Optional

from console.errors import AuthExpired, RequestFailed, ValidationRejected
from console.session import SessionStore

LOGGER = logging.getLogger(__name__)


class LoginController:
    """The only place a fresh credential enters the session."""

    def __init__(self, gateway: Any, session: SessionStore):
        self._gateway = gateway
        self._session = session
        self.submitting = False
        self.error: Optional[str] = None

    async def submit(self, username: str, password: str) -> bool:
        if self.submitting:
            return False
        self.submitting = True
        self.error = None
        try:
            result = await self._gateway.authenticate(username, password)
        except (AuthExpired, ValidationRejected):
            self.error = "Invalid username or password"
            return False
        except RequestFailed as exc:
            LOGGER.warning("Login request failed: %s", exc)
            self.error = "Login failed, please try again"
            return False
        finally:
            self.submitting = False
        self._session.set_token(result.token)
        LOGGER.info("Logged in as %s", username)
        return True


def logout(session: SessionStore) -> None:
    session.clear()
