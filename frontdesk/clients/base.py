from typing import Any, Optional
import httpx

class BackendError(RuntimeError):
    """Raised when the hospital backend cannot satisfy a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

class BackendUnavailableError(BackendError):
    """Raised when the backend could not be reached."""

class BackendRejectedError(BackendError):
    """Raised for an HTTP error status or a `status: false` envelope."""

class BackendClient:
    """Thin wrapper over an httpx client speaking the backend's JSON envelope.

    Every backend response looks like ``{"status": bool, "data": ...}`` on
    success or ``{"status": false, "message": "..."}`` on failure. An HTTP
    error status and a false ``status`` flag are reported the same way.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    async def _send(
        self, method: str, path: str, http: Optional[httpx.AsyncClient] = None, **kwargs
    ) -> httpx.Response:
        try:
            response = await (http or self._http).request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = _error_message(exc.response) or (
                f"Backend request failed with status {exc.response.status_code}"
            )
            raise BackendRejectedError(message, exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailableError("Backend request failed") from exc

        return response

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the `data` payload of the envelope."""
        response = await self._send(method, path, **kwargs)
        payload = _json(response)

        if not isinstance(payload, dict) or not payload.get("status"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise BackendRejectedError(
                message or "Backend reported a failure", response.status_code
            )

        return payload.get("data")

    async def _request_raw(self, method: str, path: str, **kwargs) -> dict:
        """Send a request and return the decoded JSON body without unwrapping."""
        response = await self._send(method, path, **kwargs)
        payload = _json(response)
        if not isinstance(payload, dict):
            raise BackendRejectedError("Backend returned an unexpected response", response.status_code)
        return payload

    async def _download(self, method: str, path: str, **kwargs) -> bytes:
        """Send a request whose response body is a binary document."""
        response = await self._send(method, path, **kwargs)
        return response.content

def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise BackendRejectedError("Backend returned invalid JSON", response.status_code) from exc

def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        return payload.get("message")
    return None
