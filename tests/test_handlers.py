"""Tests for bot handlers, driven through the middleware chain."""

from unittest.mock import MagicMock

import pytest
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import BufferedInputFile

from conftest import dispatch, make_callback, make_jwt, make_message
from ledgerbot.bot.handlers import auth, fallback, settings as settings_handlers, start, transfer, wallet
from ledgerbot.core.login import LoginStep
from ledgerbot.core.preferences import DisplayFormat

AUTH = {"auth": True}

PROFILE = {
    "id": "ledger-user-1",
    "email": "alice@example.com",
    "firstName": "Alice",
    "organizationId": "org-1",
    "createdAt": "2024-01-01T00:00:00Z",
}

EVM_ADDRESS = "0x" + "a" * 40

WALLETS = [
    {"id": "w1", "network": "ethereum", "walletAddress": EVM_ADDRESS, "isDefault": True},
    {"id": "w2", "network": "bitcoin", "walletAddress": "bc1" + "q" * 39},
]

BALANCES = [
    {
        "walletId": "w1",
        "network": "ethereum",
        "isDefault": True,
        "balances": [{"symbol": "USDT", "balance": "12.5"}],
    }
]


def _texts(message) -> list[str]:
    return [call.args[0] for call in message.answer.await_args_list]


def _buttons(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


@pytest.fixture
def logged_in(services, clock):
    """Session with a token valid for an hour."""
    token = make_jwt(exp=clock.now + 3600)
    services.sessions.store(1, 100, token=token, refresh_token="ref", ledger_user_id="ledger-user-1")
    return token


class TestStartHandlers:
    """Tests for start, cancel and fallback."""

    @pytest.mark.asyncio
    async def test_start_greets_by_name(self, services):
        message = make_message("/start")

        await dispatch(services, start.cmd_start, message)

        assert "Alice" in _texts(message)[0]

    @pytest.mark.asyncio
    async def test_support_shows_contact(self, services):
        message = make_message("/support")

        await dispatch(services, start.cmd_support, message)

        assert "help@ledger.test" in _texts(message)[0]

    @pytest.mark.asyncio
    async def test_cancel_ends_conversations(self, services):
        """Test /cancel drops both the login attempt and the transfer."""
        services.auth.begin_login(1)
        services.transfers.start_email_transfer(1)
        message = make_message("/cancel")

        await dispatch(services, start.cmd_cancel, message)

        assert services.logins.get(1) is None
        assert not services.transfers.has_active(1)
        assert _texts(message) == ["Current operation canceled."]

    @pytest.mark.asyncio
    async def test_unknown_command(self, services):
        message = make_message("/frobnicate")

        await dispatch(services, fallback.unknown_command, message)

        assert "Unknown command" in _texts(message)[0]


class TestLoginHandlers:
    """Tests for the login conversation."""

    @pytest.mark.asyncio
    async def test_bad_email_keeps_asking(self, services):
        services.auth.begin_login(1)
        message = make_message("not-an-email")

        await dispatch(services, auth.handle_login_email, message, flags={"rate_limit": "login"})

        assert _texts(message)[0].startswith("Failed to send OTP")
        assert services.logins.is_awaiting(1, LoginStep.AWAITING_EMAIL)

    @pytest.mark.asyncio
    async def test_wrong_code_keeps_attempt(self, services, fake_ledger):
        """Test a rejected code leaves the attempt open for another try."""
        fake_ledger.on("POST", "/auth/email-otp/request", {"sid": "sid-1"})
        fake_ledger.on("POST", "/auth/email-otp/authenticate", {"message": "Invalid OTP"}, status=401)
        services.auth.begin_login(1)
        await services.auth.request_otp(1, "alice@example.com")
        message = make_message("000000")

        await dispatch(services, auth.handle_login_otp, message, flags={"rate_limit": "otp"})

        assert _texts(message)[0].startswith("Authentication failed")
        assert services.logins.is_awaiting(1, LoginStep.AWAITING_OTP)
        assert services.sessions.get(1) is None

    @pytest.mark.asyncio
    async def test_logout(self, services, logged_in):
        message = make_message("/logout")

        await dispatch(services, auth.cmd_logout, message)

        assert "logged out successfully" in _texts(message)[0]
        assert services.sessions.get(1) is None

    @pytest.mark.asyncio
    async def test_logout_without_session(self, services):
        message = make_message("/logout")

        await dispatch(services, auth.cmd_logout, message)

        assert _texts(message) == ["You are not logged in."]

    @pytest.mark.asyncio
    async def test_kyc_pending_links_platform(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/auth/me", PROFILE)
        fake_ledger.on("GET", "/kycs", {"data": [{"id": "k1", "status": "pending"}]})
        message = make_message("/kyc")

        await dispatch(services, auth.cmd_kyc, message, flags={"auth": True, "rate_limit": "kyc"})

        text = _texts(message)[0]
        assert "⏳ Pending" in text
        assert "https://app.ledger.test/kyc" in text


class TestWalletHandlers:
    """Tests for balance, wallet and history views."""

    @pytest.mark.asyncio
    async def test_rejected_token_clears_session_token(self, services, fake_ledger, logged_in):
        """Test a 401 from the ledger ends the session credentials."""
        fake_ledger.on("GET", "/wallets/balances", {"message": "Unauthorized"}, status=401)
        message = make_message("/balance")

        await dispatch(services, wallet.cmd_balance, message, flags=AUTH)

        assert "session has expired" in _texts(message)[0]
        assert services.sessions.get(1).token is None

    @pytest.mark.asyncio
    async def test_balance_lists_wallets(self, services, fake_ledger, logged_in):
        fake_ledger.on(
            "GET",
            "/wallets/balances",
            [
                {
                    "walletId": "w1",
                    "network": "ethereum",
                    "isDefault": True,
                    "balances": [{"symbol": "USDT", "balance": "12.5"}],
                }
            ],
        )
        message = make_message("/balance")

        await dispatch(services, wallet.cmd_balance, message, flags=AUTH)

        text = _texts(message)[0]
        assert "USDT" in text
        assert "ethereum" in text

    @pytest.mark.asyncio
    async def test_history_rejects_bad_page(self, services, logged_in):
        message = make_message("/history abc")

        await dispatch(
            services, wallet.cmd_history, message, flags=AUTH, command=MagicMock(args="abc")
        )

        assert _texts(message) == ["Usage: /history [page]"]

    @pytest.mark.asyncio
    async def test_history_requests_page(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/transfers", {"transfers": [], "total": 25, "page": 2, "limit": 10})
        message = make_message("/history 2")

        await dispatch(
            services, wallet.cmd_history, message, flags=AUTH, command=MagicMock(args="2")
        )

        request = fake_ledger.calls("GET", "/transfers")[0]
        assert request.url.params["page"] == "2"
        assert message.answer.await_args.kwargs["reply_markup"] is not None

    @pytest.mark.asyncio
    async def test_balance_offers_refresh_and_deposit(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/wallets/balances", BALANCES)
        message = make_message("/balance")

        await dispatch(services, wallet.cmd_balance, message, flags=AUTH)

        assert _buttons(message.answer.await_args.kwargs["reply_markup"]) == [
            "refresh_balances",
            "show_deposit",
        ]

    @pytest.mark.asyncio
    async def test_refresh_balances_edits_in_place(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/wallets/balances", BALANCES)
        callback = make_callback("refresh_balances")

        await dispatch(services, wallet.handle_refresh_balances, callback, flags=AUTH)

        assert "USDT" in callback.message.edit_text.await_args.args[0]
        callback.message.answer.assert_not_awaited()
        assert callback.answer.await_args.args[0] == "Balances updated!"

    @pytest.mark.asyncio
    async def test_refresh_unchanged_balances_is_quiet(self, services, fake_ledger, logged_in):
        """Test Telegram refusing an identical edit still acknowledges the refresh."""
        fake_ledger.on("GET", "/wallets/balances", BALANCES)
        callback = make_callback("refresh_balances")
        callback.message.edit_text.side_effect = TelegramBadRequest(
            method=MagicMock(), message="Bad Request: message is not modified"
        )

        await dispatch(services, wallet.handle_refresh_balances, callback, flags=AUTH)

        assert callback.answer.await_args.args[0] == "Balances updated!"

    @pytest.mark.asyncio
    async def test_refresh_history_reloads_first_page(self, services, fake_ledger, logged_in):
        fake_ledger.on(
            "GET",
            "/transfers",
            {"transfers": [{"id": "t-1", "amount": "5", "currency": "USD"}], "total": 1, "page": 1, "limit": 10},
        )
        callback = make_callback("refresh_history")

        await dispatch(services, wallet.handle_refresh_history, callback, flags=AUTH)

        (request,) = fake_ledger.calls("GET", "/transfers")
        assert request.url.params["page"] == "1"
        kwargs = callback.message.edit_text.await_args.kwargs
        assert _buttons(kwargs["reply_markup"]) == ["refresh_history"]
        assert "t-1" in callback.message.edit_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_wallet_details_sent_as_qr_photo(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/wallets", WALLETS)
        callback = make_callback("wallet_details:w1")

        await dispatch(services, wallet.handle_wallet_details, callback, flags=AUTH)

        photo = callback.message.answer_photo.await_args.args[0]
        assert isinstance(photo, BufferedInputFile)
        assert photo.data.startswith(b"\x89PNG")
        kwargs = callback.message.answer_photo.await_args.kwargs
        assert EVM_ADDRESS in kwargs["caption"]
        assert _buttons(kwargs["reply_markup"]) == ["show_receive"]

    @pytest.mark.asyncio
    async def test_wallet_without_address_shown_as_text(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/wallets", [{"id": "w3", "network": "solana"}])
        callback = make_callback("wallet_details:w3")

        await dispatch(services, wallet.handle_wallet_details, callback, flags=AUTH)

        callback.message.answer_photo.assert_not_awaited()
        assert "Address: n/a" in callback.message.edit_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_receive_shows_default_address(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/wallets", WALLETS)
        message = make_message("/receive")

        await dispatch(services, wallet.cmd_receive, message, flags=AUTH)

        photo = message.answer_photo.await_args.args[0]
        assert photo.data.startswith(b"\x89PNG")
        caption = message.answer_photo.await_args.kwargs["caption"]
        assert "Deposit Address" in caption
        assert EVM_ADDRESS in caption
        assert "bitcoin" not in caption

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", ["show_receive", "show_deposit"])
    async def test_deposit_buttons_show_address(self, services, fake_ledger, logged_in, data):
        fake_ledger.on("GET", "/wallets", WALLETS)
        callback = make_callback(data)

        await dispatch(services, wallet.handle_show_receive, callback, flags=AUTH)

        assert EVM_ADDRESS in callback.message.answer_photo.await_args.kwargs["caption"]
        callback.answer.assert_awaited()

    @pytest.mark.asyncio
    async def test_receive_without_default_wallet(self, services, fake_ledger, logged_in):
        fake_ledger.on("GET", "/wallets", [WALLETS[1]])
        message = make_message("/receive")

        await dispatch(services, wallet.cmd_receive, message, flags=AUTH)

        message.answer_photo.assert_not_awaited()
        assert "No default wallet" in _texts(message)[0]


class TestSettingsHandlers:
    """Tests for preference callbacks."""

    @pytest.mark.asyncio
    async def test_toggle_notifications(self, services):
        callback = make_callback("settings_notifications")

        await dispatch(services, settings_handlers.handle_toggle_notifications, callback)

        assert services.preferences.get(1).notifications_enabled is False
        assert callback.answer.await_args.args[0] == "🔕 Notifications disabled"

    @pytest.mark.asyncio
    async def test_unsupported_currency_alert(self, services):
        callback = make_callback("set_currency:XYZ")

        await dispatch(services, settings_handlers.handle_set_currency, callback)

        assert callback.answer.await_args.kwargs["show_alert"] is True
        assert services.preferences.get(1).default_currency == "USD"

    @pytest.mark.asyncio
    async def test_display_format(self, services):
        callback = make_callback("settings_format:compact")

        await dispatch(services, settings_handlers.handle_display_format, callback)

        assert services.preferences.get(1).display_format is DisplayFormat.COMPACT


class TestLoginToTransfer:
    """Full conversation from login to an executed email transfer."""

    @pytest.mark.asyncio
    async def test_login_then_send(self, services, fake_ledger, clock):
        token = make_jwt(exp=clock.now + 3600)
        fake_ledger.on("POST", "/auth/email-otp/request", {"sid": "sid-1"})
        fake_ledger.on(
            "POST",
            "/auth/email-otp/authenticate",
            {"accessToken": token, "refreshToken": "ref-1", "user": PROFILE},
        )
        fake_ledger.on("GET", "/auth/me", PROFILE)
        fake_ledger.on("GET", "/kycs", {"data": []})
        fake_ledger.on(
            "POST",
            "/transfers/calculate-fee",
            {"fee": "1.50", "feeCurrency": "USD", "total": "101.50"},
        )
        fake_ledger.on("POST", "/transfers/validate-recipient", {"valid": True})
        fake_ledger.on(
            "POST",
            "/transfers/send",
            {"id": "tr-1", "status": "pending", "amount": "100", "currency": "USD"},
        )

        login = {"rate_limit": "login"}
        await dispatch(services, auth.cmd_login, make_message("/login"), flags=login)
        await dispatch(services, auth.handle_login_email, make_message("alice@example.com"), flags=login)
        otp_message = make_message("123456")
        await dispatch(services, auth.handle_login_otp, otp_message, flags={"rate_limit": "otp"})

        assert _texts(otp_message)[0].startswith("Login successful!")
        session = services.sessions.get(1)
        assert session.token == token
        assert session.ledger_user_id == "ledger-user-1"
        assert services.logins.get(1) is None

        await dispatch(services, transfer.cmd_send, make_message("/send"), flags=AUTH)
        await dispatch(services, transfer.handle_send_email, make_callback("send_email"), flags=AUTH)
        await dispatch(
            services, transfer.handle_transfer_input, make_message("bob@example.com"), flags=AUTH
        )
        await dispatch(services, transfer.handle_transfer_input, make_message("100"), flags=AUTH)
        await dispatch(
            services, transfer.handle_select_currency, make_callback("select_currency:USD"), flags=AUTH
        )

        assert services.transfers.get(1).ready_to_confirm

        confirm = make_callback("confirm_transfer")
        await dispatch(services, transfer.handle_confirm, confirm, flags=AUTH)

        sends = fake_ledger.calls("POST", "/transfers/send")
        assert len(sends) == 1
        body = fake_ledger.body(sends[0])
        assert body["email"] == "bob@example.com"
        assert body["amount"] == "100"
        assert body["currency"] == "USD"
        assert body["fee"] == "1.50"
        assert body["feeCurrency"] == "USD"
        assert body["total"] == "101.50"
        assert sends[0].headers["Authorization"] == f"Bearer {token}"
        assert not services.transfers.has_active(1)
        assert "Transfer completed" in confirm.message.answer.await_args.args[0]

    @pytest.mark.asyncio
    async def test_confirm_without_transfer(self, services, logged_in):
        callback = make_callback("confirm_transfer")

        await dispatch(services, transfer.handle_confirm, callback, flags=AUTH)

        assert callback.message.answer.await_args.args[0].startswith("No transfer in progress")
