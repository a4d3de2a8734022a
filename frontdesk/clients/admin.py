from typing import Any, Dict

from .base import BackendClient

class AdminClient(BackendClient):
    """Calls under the admin base path."""

    async def add_doctor(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request("POST", "/doctors/add", json=payload)
        return data or {}
