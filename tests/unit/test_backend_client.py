"""Unit tests for BackendClient."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pickup_ordering_service.services.backend_client import BackendClient, BackendError


def json_response(status_code: int, body: Any) -> MagicMock:
    """Build a mock httpx response carrying a JSON body."""
    response = MagicMock()
    response.status_code = status_code
    response.content = b"{}"
    response.json.return_value = body
    response.text = str(body)
    return response


@pytest.mark.unit
class TestBackendClient:
    """Test suite for BackendClient."""

    @pytest.fixture
    def client(self) -> BackendClient:
        """Create a BackendClient with test configuration."""
        return BackendClient(base_url="https://project.example.co/", api_key="anon-key")

    def test_client_initialization(self, client: BackendClient) -> None:
        """Test that the base URL is normalized."""
        assert client.base_url == "https://project.example.co"
        assert client.api_key == "anon-key"

    @pytest.mark.asyncio
    async def test_select_builds_filters_and_order(self, client: BackendClient) -> None:
        """Test the query parameters of a filtered, ordered select."""
        rows = [{"id": "o1"}]

        with patch(
            "httpx.AsyncClient.request", new_callable=AsyncMock, return_value=json_response(200, rows)
        ) as mock_request:
            result = await client.select(
                "orders",
                columns="*, order_items(*)",
                filters={"user_id": "user_123", "deleted_at": None},
                order_by="created_at",
                descending=True,
            )

        assert result == rows
        args, kwargs = mock_request.call_args
        assert args == ("GET", "https://project.example.co/rest/v1/orders")
        assert kwargs["params"] == {
            "select": "*, order_items(*)",
            "user_id": "eq.user_123",
            "deleted_at": "is.null",
            "order": "created_at.desc",
        }
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_select_one_returns_none_when_empty(self, client: BackendClient) -> None:
        """Test that selecting a missing row gives None."""
        with patch(
            "httpx.AsyncClient.request", new_callable=AsyncMock, return_value=json_response(200, [])
        ):
            assert await client.select_one("dishes", filters={"id": "missing"}) is None

    @pytest.mark.asyncio
    async def test_insert_requests_representation(self, client: BackendClient) -> None:
        """Test that inserts ask for the stored rows back."""
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=json_response(201, [{"id": "d1"}]),
        ) as mock_request:
            result = await client.insert("dishes", [{"name": "Chai"}])

        assert result == [{"id": "d1"}]
        kwargs = mock_request.call_args.kwargs
        assert kwargs["json"] == [{"name": "Chai"}]
        assert kwargs["headers"]["Prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_update_filters_rows(self, client: BackendClient) -> None:
        """Test that updates send the filter and values."""
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=json_response(200, [{"id": "o1", "status": "ready"}]),
        ) as mock_request:
            await client.update("orders", {"status": "ready"}, filters={"id": "o1"})

        args, kwargs = mock_request.call_args
        assert args[0] == "PATCH"
        assert kwargs["params"] == {"id": "eq.o1"}
        assert kwargs["json"] == {"status": "ready"}

    @pytest.mark.asyncio
    async def test_delete_with_empty_body(self, client: BackendClient) -> None:
        """Test that a 204 response is accepted."""
        response = json_response(204, None)
        response.content = b""

        with patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=response):
            assert await client.delete("orders", filters={"id": "o1"}) is None

    @pytest.mark.asyncio
    async def test_error_message_passed_through(self, client: BackendClient) -> None:
        """Test that the backend's message and code are kept."""
        body = {"message": "new row violates row-level security policy", "code": "42501"}

        with patch(
            "httpx.AsyncClient.request", new_callable=AsyncMock, return_value=json_response(403, body)
        ):
            with pytest.raises(BackendError) as exc_info:
                await client.insert("orders", [{}])

        assert str(exc_info.value) == "new row violates row-level security policy"
        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "42501"

    @pytest.mark.asyncio
    async def test_auth_error_description(self, client: BackendClient) -> None:
        """Test that auth errors surface their description."""
        body = {"error": "invalid_grant", "error_description": "Invalid login credentials"}

        with patch(
            "httpx.AsyncClient.request", new_callable=AsyncMock, return_value=json_response(400, body)
        ):
            with pytest.raises(BackendError, match="Invalid login credentials"):
                await client.sign_in_with_password("a@example.com", "wrong")

    @pytest.mark.asyncio
    async def test_non_json_error(self, client: BackendClient) -> None:
        """Test error responses without a JSON body."""
        response = MagicMock()
        response.status_code = 502
        response.json.side_effect = ValueError("no json")
        response.text = "Bad Gateway"

        with patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=response):
            with pytest.raises(BackendError, match="Bad Gateway"):
                await client.select("dishes")

    @pytest.mark.asyncio
    async def test_transport_error(self, client: BackendClient) -> None:
        """Test that network failures become BackendError."""
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("connection refused"),
        ):
            with pytest.raises(BackendError, match="Could not reach the backend"):
                await client.select("dishes")

    @pytest.mark.asyncio
    async def test_sign_in_request(self, client: BackendClient) -> None:
        """Test the password grant request."""
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=json_response(200, {"access_token": "tok"}),
        ) as mock_request:
            data = await client.sign_in_with_password("a@example.com", "secret")

        assert data == {"access_token": "tok"}
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://project.example.co/auth/v1/token")
        assert kwargs["params"] == {"grant_type": "password"}
        assert kwargs["json"] == {"email": "a@example.com", "password": "secret"}

    @pytest.mark.asyncio
    async def test_sign_up_sends_metadata(self, client: BackendClient) -> None:
        """Test that sign-up stores name and phone as identity metadata."""
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=json_response(200, {"user": {"id": "u1"}}),
        ) as mock_request:
            await client.sign_up("a@example.com", "secret", {"name": "Asha", "phone": "555"})

        assert mock_request.call_args.kwargs["json"]["data"] == {"name": "Asha", "phone": "555"}

    @pytest.mark.asyncio
    async def test_user_requests_carry_access_token(self, client: BackendClient) -> None:
        """Test that identity lookups use the user's bearer token."""
        with patch(
            "httpx.AsyncClient.request",
            new_callable=AsyncMock,
            return_value=json_response(200, {"id": "u1"}),
        ) as mock_request:
            await client.get_user("user-token")

        headers = mock_request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer user-token"
        assert headers["apikey"] == "anon-key"

    def test_oauth_authorize_url(self, client: BackendClient) -> None:
        """Test the OAuth authorize URL."""
        url = client.oauth_authorize_url("google", redirect_to="https://shop.example.com/")

        assert url == (
            "https://project.example.co/auth/v1/authorize"
            "?provider=google&redirect_to=https%3A%2F%2Fshop.example.com%2F"
        )
