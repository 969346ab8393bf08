"""Tests for the ledger HTTP client and error mapping."""

import httpx
import pytest

from conftest import API_BASE
from ledgerbot.errors import (
    ApiError,
    AuthError,
    NetworkError,
    RateLimitError,
    ResponseFormatError,
    user_message,
)
from ledgerbot.ledger.client import LedgerClient


class TestRequests:
    """Tests for request shapes and response parsing."""

    @pytest.mark.asyncio
    async def test_request_otp(self, ledger_client, fake_ledger):
        """Test OTP request posts the email and returns the sid."""
        fake_ledger.on("POST", "/auth/email-otp/request", {"sid": "sid-1"})

        result = await ledger_client.request_otp("alice@example.com")

        assert result.sid == "sid-1"
        (request,) = fake_ledger.calls("POST", "/auth/email-otp/request")
        assert fake_ledger.body(request) == {"email": "alice@example.com"}
        assert "Authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_authenticate_parses_camel_case(self, ledger_client, fake_ledger):
        """Test tokens and user are read from camelCase fields."""
        fake_ledger.on(
            "POST",
            "/auth/email-otp/authenticate",
            {
                "accessToken": "acc",
                "refreshToken": "ref",
                "user": {"id": "u-1", "email": "alice@example.com", "organizationId": "org-1"},
            },
        )

        result = await ledger_client.authenticate("alice@example.com", "123456", "sid-1")

        assert result.access_token == "acc"
        assert result.refresh_token == "ref"
        assert result.user.organization_id == "org-1"

    @pytest.mark.asyncio
    async def test_refresh_token(self, ledger_client, fake_ledger):
        """Test the refresh exchange returns the new access token."""
        fake_ledger.on("POST", "/auth/refresh", {"accessToken": "renewed"})

        assert await ledger_client.refresh_token("ref") == "renewed"
        (request,) = fake_ledger.calls("POST", "/auth/refresh")
        assert fake_ledger.body(request) == {"refreshToken": "ref"}

    @pytest.mark.asyncio
    async def test_refresh_without_token_fails(self, ledger_client, fake_ledger):
        """Test a refresh response lacking a token is an ApiError."""
        fake_ledger.on("POST", "/auth/refresh", {})

        with pytest.raises(ApiError):
            await ledger_client.refresh_token("ref")

    @pytest.mark.asyncio
    async def test_refresh_list_body_fails(self, ledger_client, fake_ledger):
        """Test a refresh response that is not an object is an ApiError."""
        fake_ledger.on("POST", "/auth/refresh", [])

        with pytest.raises(ApiError):
            await ledger_client.refresh_token("ref")

    @pytest.mark.asyncio
    async def test_non_json_success_body(self, ledger_client, fake_ledger):
        """Test a 2xx body that is not JSON is a ResponseFormatError."""
        fake_ledger.on(
            "POST",
            "/transfers/send",
            handler=lambda request: httpx.Response(200, text="<html>ok</html>"),
        )

        with pytest.raises(ResponseFormatError) as exc_info:
            await ledger_client.send_to_email("tok", "b@x.io", "5", "USD", "0", "USD", "5")

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_send_receipt_missing_fields(self, ledger_client, fake_ledger):
        """Test a 2xx send body without a transfer id is a ResponseFormatError."""
        fake_ledger.on("POST", "/transfers/send", {"status": "pending"})

        with pytest.raises(ResponseFormatError):
            await ledger_client.send_to_email("tok", "b@x.io", "5", "USD", "0", "USD", "5")

    @pytest.mark.asyncio
    async def test_balances_numbers_coerced(self, ledger_client, fake_ledger):
        """Test numeric balances are kept as strings."""
        fake_ledger.on(
            "GET",
            "/wallets/balances",
            [
                {
                    "walletId": "w-1",
                    "network": "ethereum",
                    "isDefault": True,
                    "balances": [{"symbol": "USDT", "balance": 12.5, "decimals": 6}],
                }
            ],
        )

        (wallet,) = await ledger_client.get_balances("tok")

        assert wallet.is_default
        assert wallet.balances[0].balance == "12.5"

    @pytest.mark.asyncio
    async def test_balances_non_list_rejected(self, ledger_client, fake_ledger):
        """Test a non-list balances payload is an ApiError."""
        fake_ledger.on("GET", "/wallets/balances", {"data": []})

        with pytest.raises(ApiError):
            await ledger_client.get_balances("tok")

    @pytest.mark.asyncio
    async def test_history_paging_params(self, ledger_client, fake_ledger):
        """Test history passes page and limit as query parameters."""
        fake_ledger.on(
            "GET",
            "/transfers",
            {"transfers": [{"id": "t-1", "amount": "5", "currency": "USD"}], "total": 11, "page": 2, "limit": 10},
        )

        page = await ledger_client.get_transfers("tok", page=2)

        assert page.total == 11
        assert page.transfers[0].id == "t-1"
        (request,) = fake_ledger.calls("GET", "/transfers")
        assert request.url.params["page"] == "2"
        assert request.url.params["limit"] == "10"

    @pytest.mark.asyncio
    async def test_kyc_list(self, ledger_client, fake_ledger):
        """Test KYC records are read from the data envelope."""
        fake_ledger.on("GET", "/kycs", {"data": [{"id": "k-1", "status": "approved"}]})

        (kyc,) = await ledger_client.list_kyc("tok")

        assert kyc.status == "approved"

    @pytest.mark.asyncio
    async def test_authorize_channel(self, ledger_client, fake_ledger):
        """Test channel authorization posts socket and channel."""
        fake_ledger.on("POST", "/notifications/auth", {"auth": "key:sig"})

        result = await ledger_client.authorize_channel("tok", "1.2", "private-org-1")

        assert result == {"auth": "key:sig"}
        (request,) = fake_ledger.calls("POST", "/notifications/auth")
        assert fake_ledger.body(request) == {"socket_id": "1.2", "channel_name": "private-org-1"}


class TestErrorMapping:
    """Tests for status code to error mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors(self, ledger_client, fake_ledger, status):
        """Test 401 and 403 become AuthError."""
        fake_ledger.on("GET", "/auth/me", {"message": "Unauthorized"}, status=status)

        with pytest.raises(AuthError):
            await ledger_client.get_profile("tok")

    @pytest.mark.asyncio
    async def test_rate_limited(self, ledger_client, fake_ledger):
        """Test 429 becomes RateLimitError."""
        fake_ledger.on("GET", "/auth/me", {}, status=429)

        with pytest.raises(RateLimitError):
            await ledger_client.get_profile("tok")

    @pytest.mark.asyncio
    async def test_api_error_keeps_backend_message(self, ledger_client, fake_ledger):
        """Test the backend message and status survive on ApiError."""
        fake_ledger.on(
            "POST", "/transfers/send", {"message": ["amount too low", "bad email"]}, status=422
        )

        with pytest.raises(ApiError) as exc_info:
            await ledger_client.send_to_email("tok", "b@x.io", "1", "USD", "0", "USD", "1")

        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "amount too low; bad email"

    @pytest.mark.asyncio
    async def test_network_error(self, fake_ledger):
        """Test a transport failure becomes NetworkError."""

        def fail(request):
            raise httpx.ConnectError("refused", request=request)

        client = LedgerClient(API_BASE, transport=httpx.MockTransport(fail))
        try:
            with pytest.raises(NetworkError):
                await client.get_profile("tok")
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        """Test a timeout becomes NetworkError."""

        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = LedgerClient(API_BASE, transport=httpx.MockTransport(slow))
        try:
            with pytest.raises(NetworkError) as exc_info:
                await client.get_profile("tok")
        finally:
            await client.close()

        assert "too long" in exc_info.value.message

    def test_user_message(self):
        """Test rendering of each error kind."""
        assert user_message(ApiError("Insufficient funds")) == "🔴 Insufficient funds"
        assert user_message(NetworkError("down")).startswith("🔌")
        assert user_message(RuntimeError("x")).startswith("An error occurred")
