"""Async HTTP client for the workout routes."""
from typing import Any, Dict, List, Optional
import logging

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return resp.reason_phrase


class FitTrackClient:
    """Thin wrapper over ``httpx.AsyncClient``; non-2xx responses raise ApiError.

    Successful calls return the ``data`` member of the response envelope.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        api_prefix: str = "/api/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.api_prefix = api_prefix.rstrip("/")
        self._http = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "FitTrackClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        resp = await self._http.request(method, f"{self.api_prefix}{path}", **kwargs)
        if resp.is_error:
            message = _error_message(resp)
            logger.debug("%s %s failed: %s %s", method, path, resp.status_code, message)
            raise ApiError(resp.status_code, message)
        return resp.json().get("data")

    async def get_me(self) -> Dict[str, Any]:
        return await self._request("GET", "/users/me")

    async def get_active_session(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._request("GET", "/workouts/active-session", params={"userId": user_id})

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/workouts/sessions/{session_id}")

    async def list_sessions(self, user_id: str, *, limit: int = 50) -> List[Dict[str, Any]]:
        return await self._request("GET", "/workouts/sessions", params={"userId": user_id, "limit": limit})

    async def start_session(self, note: Optional[str] = None) -> Dict[str, Any]:
        return await self._request("POST", "/workouts/sessions", json={"note": note})

    async def end_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("PATCH", f"/workouts/sessions/{session_id}", json={"action": "end"})

    async def add_set(self, session_id: str, exercise_id: str, **fields: Any) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/workouts/sessions/{session_id}/sets", json={"exercise_id": exercise_id, **fields}
        )

    async def update_set(self, set_id: str, **fields: Any) -> Dict[str, Any]:
        """Only the keyword arguments given are sent; pass None to clear a field."""
        return await self._request("PATCH", f"/workouts/sets/{set_id}", json=fields)

    async def delete_set(self, set_id: str) -> None:
        await self._request("DELETE", f"/workouts/sets/{set_id}")
