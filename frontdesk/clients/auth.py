from typing import Any, Dict

from .base import BackendClient, BackendRejectedError

class AuthClient(BackendClient):
    """Calls under the shared auth base path. No session token is attached."""

    async def login(self, email: str, password: str, role: str) -> Dict[str, Any]:
        """Exchange staff credentials for a backend token.

        The login endpoint answers ``{"token": ..., "user": {...}}`` rather
        than the usual envelope.
        """
        payload = await self._request_raw(
            "POST", "/login", json={"email": email, "password": password, "role": role}
        )
        if not payload.get("token"):
            raise BackendRejectedError(payload.get("message") or "Login failed. Try again.")
        return payload
