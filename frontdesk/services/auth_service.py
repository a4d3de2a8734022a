from fastapi import HTTPException, status
from typing import Optional
import logging
import httpx

from ..clients.auth import AuthClient
from ..clients.base import BackendError, BackendRejectedError
from ..core.config import Settings
from ..core.session import (
    SessionCredentials, SessionStore, StaffRole, create_backend_http_client
)
from .registration import FormRegistry

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(
        self,
        sessions: SessionStore,
        forms: FormRegistry,
        config: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sessions = sessions
        self.forms = forms
        self.config = config
        self._transport = transport

    async def login(self, email: str, password: str, role: StaffRole) -> SessionCredentials:
        """Log in against the backend and start a session for the token."""
        async with create_backend_http_client(
            self.config, self.config.AUTH_API_PATH, transport=self._transport
        ) as http_client:
            try:
                payload = await AuthClient(http_client).login(email, password, role.value)
            except BackendRejectedError as e:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail=e.message,
                )
            except BackendError as e:
                logger.warning(f"Login request failed: {e.message}")
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail="Login failed. Try again.",
                )

        credentials = SessionCredentials(
            token=payload["token"],
            role=role,
            user=payload.get("user") or {},
        )
        self.sessions.start(credentials)
        return credentials

    async def logout(self, token: str) -> bool:
        """Invalidate a session, closing its clients and its open forms."""
        discarded = self.forms.discard_owner(token)
        if discarded:
            logger.info(f"Discarded {discarded} open forms on logout")
        return await self.sessions.invalidate(token)
