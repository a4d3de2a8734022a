from datetime import datetime
from typing import Optional, Dict, Any, Callable
from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from pydantic import BaseModel, Field
from enum import Enum
import logging
import httpx

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Bearer token carried by the browser for the lifetime of a session
security = HTTPBearer(auto_error=False)

class StaffRole(str, Enum):
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    SCANNER = "scanner"

ROLE_API_PATHS = {
    StaffRole.ADMIN: "ADMIN_API_PATH",
    StaffRole.RECEPTIONIST: "RECEPTIONIST_API_PATH",
    StaffRole.SCANNER: "SCANNER_API_PATH",
}

class SessionCredentials(BaseModel):
    token: str
    role: StaffRole
    user: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=datetime.utcnow)

# Security exceptions
class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )

def create_backend_http_client(
    config: Settings,
    path: str,
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an HTTP client for one role-scoped backend base path."""
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    return httpx.AsyncClient(
        base_url=config.api_url(path),
        headers=headers,
        timeout=config.HTTP_TIMEOUT,
        transport=transport,
    )

class Session:
    """One logged-in staff member and the backend clients built for them."""

    def __init__(
        self,
        credentials: SessionCredentials,
        config: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.config = config
        self._transport = transport
        self._http_clients: Dict[StaffRole, httpx.AsyncClient] = {}
        self._clients: Dict[str, Any] = {}
        self.closed = False

    @property
    def token(self) -> str:
        return self.credentials.token

    @property
    def role(self) -> StaffRole:
        return self.credentials.role

    def http_client(self, role: StaffRole) -> httpx.AsyncClient:
        """Return the HTTP client for a role path, carrying this session's token."""
        if self.closed:
            raise AuthenticationError("Session has been closed")

        if role not in self._http_clients:
            path = getattr(self.config, ROLE_API_PATHS[role])
            self._http_clients[role] = create_backend_http_client(
                self.config, path, self.token, self._transport
            )
        return self._http_clients[role]

    def client(self, name: str, factory: Callable[[httpx.AsyncClient], Any], role: StaffRole) -> Any:
        """Return a cached API client wrapper, building it on first use."""
        if name not in self._clients:
            self._clients[name] = factory(self.http_client(role))
        return self._clients[name]

    async def close(self):
        """Close every HTTP client opened for this session."""
        self.closed = True
        for client in self._http_clients.values():
            await client.aclose()
        self._http_clients.clear()
        self._clients.clear()

class SessionStore:
    """Sessions keyed by their bearer token."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or default_settings
        self.transport = transport
        self._sessions: Dict[str, Session] = {}

    def start(self, credentials: SessionCredentials) -> Session:
        """Start a session; an existing session for the same token is replaced."""
        session = Session(credentials, self.config, self.transport)
        self._sessions[credentials.token] = session
        logger.info(f"Session started for role {credentials.role.value}")
        return session

    def get(self, token: str) -> Optional[Session]:
        return self._sessions.get(token)

    async def invalidate(self, token: str) -> bool:
        """Close and forget a session. Returns False if it was unknown."""
        session = self._sessions.pop(token, None)
        if session is None:
            return False

        await session.close()
        logger.info(f"Session closed for role {session.role.value}")
        return True

    async def clear(self):
        """Invalidate every session."""
        for token in list(self._sessions):
            await self.invalidate(token)

    def __len__(self):
        return len(self._sessions)
