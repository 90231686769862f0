from __future__ import annotations

"""HTTP client for the hexboard persistence and sharing API."""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

LOGGER = logging.getLogger(__name__)


class BoardApiError(RuntimeError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


def _default_base() -> str:
    return (os.getenv("HEXBOARD_SERVER_BASE") or "http://127.0.0.1:8000").rstrip("/")


class BoardApiClient:
    """Thin wrapper over ``httpx.Client`` that carries the bearer token.

    Pass ``client`` to reuse an existing ``httpx.Client`` (for example a
    FastAPI ``TestClient``); otherwise one is created for ``base_url``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = (base_url or _default_base()).rstrip("/")
        self.token = token
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BoardApiClient":
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ core
    def _request(self, method: str, path: str, *, json: Any = None) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise BoardApiError(0, f"request failed: {exc}") from exc
        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}
        if response.is_error:
            message = (
                data.get("message")
                or data.get("error")
                or response.text
                or response.reason_phrase
            )
            LOGGER.debug("API %s %s failed: %s", method, path, message)
            raise BoardApiError(response.status_code, str(message))
        return data

    # ------------------------------------------------------------------ auth
    def register(self, email: str, password: str) -> str:
        data = self._request(
            "POST", "/api/auth/register", json={"email": email, "password": password}
        )
        self.token = data["token"]
        return self.token

    def login(self, email: str, password: str) -> str:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return self.token

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/me")

    # ------------------------------------------------------------------ boards
    def list_boards(self) -> List[Dict[str, Any]]:
        return list(self._request("GET", "/api/boards").get("boards") or [])

    def create_board(self, title: str = "", data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = {"title": title, "data": data if data is not None else {}}
        return self._request("POST", "/api/boards", json=body)["board"]

    def get_board(self, board_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/boards/{board_id}")["board"]

    def update_board(
        self,
        board_id: str,
        *,
        title: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if data is not None:
            body["data"] = data
        return self._request("PUT", f"/api/boards/{board_id}", json=body)["board"]

    def delete_board(self, board_id: str) -> bool:
        return bool(self._request("DELETE", f"/api/boards/{board_id}").get("ok"))

    def add_comment(
        self, board_id: str, text: str, *, hexagon_id: Optional[str] = None, share: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"text": text}
        if hexagon_id:
            body["hexagonId"] = hexagon_id
        path = f"/api/boards/{board_id}/comments"
        if share:
            path += f"?share={share}"
        return self._request("POST", path, json=body)["comment"]

    # ------------------------------------------------------------------ sharing
    def collaborators(self, board_id: str) -> List[Dict[str, Any]]:
        return list(self._request("GET", f"/api/boards/{board_id}/collaborators").get("collaborators") or [])

    def invite(self, board_id: str, email: str, role: str = "editor") -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/api/boards/{board_id}/collaborators",
            json={"email": email, "role": role},
        )["collaborator"]

    def revoke(self, board_id: str, user_id: str) -> bool:
        return bool(
            self._request("DELETE", f"/api/boards/{board_id}/collaborators/{user_id}").get("ok")
        )

    def links(self, board_id: str) -> List[Dict[str, Any]]:
        return list(self._request("GET", f"/api/boards/{board_id}/links").get("links") or [])

    def issue_link(self, board_id: str, role: str = "view") -> Dict[str, Any]:
        return self._request("POST", f"/api/boards/{board_id}/links", json={"role": role})["link"]

    def revoke_link(self, board_id: str, role: str) -> bool:
        return bool(self._request("DELETE", f"/api/boards/{board_id}/links/{role}").get("ok"))

    def shared_board(self, token: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/shared/{token}")


__all__ = ["BoardApiClient", "BoardApiError"]
