"""Client for the hosted backend (authentication and table REST API)."""

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from pickup_ordering_service.observability.metrics import record_backend_failure

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Raised when the backend rejects a request or cannot be reached.

    The message is passed through unchanged from the backend so it can be
    shown to the user as-is.
    """

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    """Extract the human-readable message and error code from an error response."""
    try:
        data = response.json()
    except ValueError:
        return (response.text or f"Request failed with status {response.status_code}", None)

    if not isinstance(data, dict):
        return (str(data), None)

    message = (
        data.get("message")
        or data.get("msg")
        or data.get("error_description")
        or data.get("error")
        or f"Request failed with status {response.status_code}"
    )
    code = data.get("code") or data.get("error_code")
    return (str(message), str(code) if code is not None else None)


class BackendClient:
    """HTTP client for the backend-as-a-service.

    Wraps the auth endpoints (``/auth/v1``) and the table endpoints
    (``/rest/v1``). Table filters are column equality only. Every request
    carries the project API key. Table requests run with the project key, so
    access decisions are made by this service; auth requests made for a
    signed-in user carry their bearer token.
    """

    def __init__(self, base_url: str, api_key: str) -> None:
        """Initialize the backend client.

        Args:
            base_url: Project URL of the backend (e.g., "https://project.example.co")
            api_key: Project API key sent with every request
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        access_token: str | None = None,
    ) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            BackendError: On HTTP error statuses or transport failures
        """
        url = f"{self.base_url}{path}"
        request_headers = self._headers(access_token)
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=request_headers
                )
        except httpx.RequestError as e:
            logger.error(f"Backend request {method} {path} failed: {e}")
            record_backend_failure(path, "transport")
            raise BackendError(f"Could not reach the backend: {e}") from e

        if response.status_code >= 400:
            message, code = _error_message(response)
            logger.error(f"Backend request {method} {path} returned {response.status_code}: {message}")
            record_backend_failure(path, str(response.status_code))
            raise BackendError(message, status_code=response.status_code, code=code)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Auth

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> dict[str, Any]:
        """Create an email/password identity.

        Args:
            email: Email address
            password: Password
            metadata: User metadata stored on the identity (name, phone)

        Returns:
            Sign-up response containing the created identity under ``user``
            (or the identity itself when email confirmation is enabled)
        """
        data = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata},
        )
        return data or {}

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        """Exchange email and password for a session."""
        data = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return data or {}

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/auth/v1/logout", access_token=access_token)

    async def get_user(self, access_token: str) -> dict[str, Any]:
        """Fetch the identity that owns an access token."""
        data = await self._request("GET", "/auth/v1/user", access_token=access_token)
        return data or {}

    def oauth_authorize_url(self, provider: str, redirect_to: str | None = None) -> str:
        """Build the OAuth authorize URL the browser is sent to.

        Args:
            provider: OAuth provider name (e.g., "google")
            redirect_to: Callback URL the backend redirects to after sign-in

        Returns:
            Absolute authorize URL
        """
        query = {"provider": provider}
        if redirect_to:
            query["redirect_to"] = redirect_to
        return f"{self.base_url}/auth/v1/authorize?{urlencode(query)}"

    # Tables

    @staticmethod
    def _filter_params(filters: dict[str, Any] | None) -> dict[str, str]:
        params: dict[str, str] = {}
        for column, value in (filters or {}).items():
            params[column] = "is.null" if value is None else f"eq.{value}"
        return params

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Select rows from a table.

        Args:
            table: Table name
            columns: Column list, may include embedded relations
            filters: Column equality filters
            order_by: Column to order by
            descending: Order direction

        Returns:
            List of row dictionaries
        """
        params = {"select": columns, **self._filter_params(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"

        data = await self._request("GET", f"/rest/v1/{table}", params=params)
        return data or []

    async def select_one(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Select a single row.

        Returns:
            The first matching row, or None when nothing matches
        """
        rows = await self.select(table, columns=columns, filters=filters)
        return rows[0] if rows else None

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Insert rows and return them as stored."""
        data = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching the filters and return them as stored."""
        data = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=self._filter_params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    async def delete(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> None:
        await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=self._filter_params(filters),
        )
