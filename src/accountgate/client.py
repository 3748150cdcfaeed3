"""Async HTTP client for the accountgate API.

Learn: Wraps an httpx.AsyncClient and keeps the latest token pair in
memory. Login can come back two ways:

- a token pair → stored, the client is now signed in
- a selection token → nothing stored; call ``users_on_account()`` with it,
  pick a username, and log in again with ``username=`` set

The refresh token is always sent as the bearer value, which the server
reads before the cookie or body.
"""

from typing import Any, Optional

import httpx

API_PREFIX = "/api/v1"


class AuthClientError(Exception):
    """An error response from the API."""

    def __init__(self, status_code: int, kind: str, reason: str):
        self.status_code = status_code
        self.kind = kind
        self.reason = reason
        super().__init__(f"{status_code} {kind}: {reason}")


class AuthClient:
    def __init__(self, http: httpx.AsyncClient, session: Optional[dict] = None):
        self.http = http
        self.session: Optional[dict] = session

    @property
    def access_token(self) -> Optional[str]:
        return self.session["access_token"] if self.session else None

    @property
    def refresh_token(self) -> Optional[str]:
        return self.session["refresh_token"] if self.session else None

    async def _post(self, path: str, json: Optional[dict] = None, token: Optional[str] = None) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        r = await self.http.post(f"{API_PREFIX}{path}", json=json, headers=headers)
        return self._parse(r)

    @staticmethod
    def _parse(r: httpx.Response) -> Any:
        if r.is_success:
            return r.json()
        try:
            body = r.json()
        except ValueError:
            body = {}
        raise AuthClientError(
            r.status_code,
            body.get("error", "HTTPError"),
            body.get("reason") or body.get("detail") or r.text,
        )

    def _require_session(self) -> None:
        if not self.session:
            raise AuthClientError(0, "MissingToken", "Not logged in")

    # ─── Session lifecycle ──────────────────────────────

    async def signup(self, email: str, password: str, username: str) -> dict:
        self.session = await self._post(
            "/auth/signup",
            {"email": email, "password": password, "username": username},
        )
        return self.session

    async def login(
        self, identifier: str, password: str, username: Optional[str] = None
    ) -> dict:
        """Log in. Returns the response; only a token pair is stored."""
        body = {"identifier": identifier, "password": password}
        if username:
            body["username"] = username
        data = await self._post("/auth/login", body)
        if "selection_token" not in data:
            self.session = data
        return data

    async def refresh(self) -> dict:
        self._require_session()
        self.session = await self._post("/auth/refresh", token=self.refresh_token)
        return self.session

    async def switch(self, username: str) -> dict:
        self._require_session()
        self.session = await self._post(
            "/auth/switch", {"username": username}, token=self.refresh_token
        )
        return self.session

    async def logout(self) -> None:
        """Revoke the refresh token. Local state is cleared even if that fails."""
        self._require_session()
        try:
            await self._post("/auth/logout", token=self.refresh_token)
        finally:
            self.session = None

    # ─── Users ──────────────────────────────────────────

    async def users_on_account(self, selection_token: str) -> list[dict]:
        r = await self.http.get(
            f"{API_PREFIX}/accounts/users",
            headers={"Authorization": f"Bearer {selection_token}"},
        )
        return self._parse(r)

    async def create_user(self, username: str) -> dict:
        self._require_session()
        return await self._post(
            "/accounts/users", {"username": username}, token=self.access_token
        )

    async def me(self) -> dict:
        self._require_session()
        r = await self.http.get(
            f"{API_PREFIX}/auth/me",
            headers={"Authorization": f"Bearer {self.access_token}"},
        )
        return self._parse(r)
