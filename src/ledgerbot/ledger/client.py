"""HTTP client for the ledger API."""

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from ledgerbot.errors import NetworkError, ResponseFormatError, raise_for_response
from ledgerbot.ledger.models import (
    AuthResult,
    FeeQuote,
    Kyc,
    OtpRequest,
    Transfer,
    TransferPage,
    User,
    Wallet,
    WalletBalance,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Endpoints:
    """Ledger API paths."""

    REQUEST_OTP = "/auth/email-otp/request"
    AUTHENTICATE = "/auth/email-otp/authenticate"
    REFRESH = "/auth/refresh"
    PROFILE = "/auth/me"
    KYC_LIST = "/kycs"
    WALLETS = "/wallets"
    BALANCES = "/wallets/balances"
    DEFAULT_WALLET = "/wallets/default"
    CALCULATE_FEE = "/transfers/calculate-fee"
    VALIDATE_RECIPIENT = "/transfers/validate-recipient"
    SEND = "/transfers/send"
    WITHDRAW = "/transfers/wallet-withdraw"
    HISTORY = "/transfers"
    NOTIFICATIONS_AUTH = "/notifications/auth"


class LedgerClient:
    """Thin async wrapper over the ledger REST API.

    Every method either returns a parsed model or raises a BotError subclass:
    AuthError for 401/403, RateLimitError for 429, ApiError for any other
    rejection, ResponseFormatError for a 2xx body that does not parse and
    NetworkError when no response arrived.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL, e.g. https://ledger.example.com/api
            timeout: Per-request timeout in seconds
            transport: Optional transport override (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _auth(token: Optional[str]) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                params=params,
                headers=self._auth(token),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Ledger API timeout: {method} {path}: {e}")
            raise NetworkError("The server took too long to respond. Please try again.")
        except httpx.TransportError as e:
            logger.warning(f"Ledger API unreachable: {method} {path}: {e}")
            raise NetworkError(
                "No response received from server. Please check your connection."
            )

        raise_for_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.error(f"Ledger API returned a non-JSON body: {method} {path}")
            raise ResponseFormatError(status_code=response.status_code, payload=response.text)

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        """Validate a 2xx body; a body that does not fit raises ResponseFormatError."""
        try:
            return model.model_validate(data)
        except ModelValidationError as e:
            logger.error(f"Unexpected {model.__name__} payload from ledger API: {e}")
            raise ResponseFormatError(payload=data)

    def _parse_list(self, model: type[ModelT], data: Any) -> list[ModelT]:
        if not isinstance(data, list):
            logger.error(f"Expected a list of {model.__name__} from ledger API")
            raise ResponseFormatError(payload=data)
        return [self._parse(model, item) for item in data]

    # ======================
    # Auth
    # ======================

    async def request_otp(self, email: str) -> OtpRequest:
        data = await self._request("POST", Endpoints.REQUEST_OTP, json={"email": email})
        return self._parse(OtpRequest, data)

    async def authenticate(self, email: str, otp: str, sid: str) -> AuthResult:
        data = await self._request(
            "POST",
            Endpoints.AUTHENTICATE,
            json={"email": email, "otp": otp, "sid": sid},
        )
        return self._parse(AuthResult, data)

    async def refresh_token(self, refresh_token: str) -> str:
        """Exchange a refresh credential for a new access token."""
        data = await self._request(
            "POST", Endpoints.REFRESH, json={"refreshToken": refresh_token}
        )
        token = data.get("accessToken") if isinstance(data, dict) else None
        if not token or not isinstance(token, str):
            raise ResponseFormatError(
                "Refresh response did not include an access token", payload=data
            )
        return token

    async def get_profile(self, token: str) -> User:
        data = await self._request("GET", Endpoints.PROFILE, token=token)
        return self._parse(User, data)

    async def list_kyc(self, token: str) -> list[Kyc]:
        data = await self._request(
            "GET", Endpoints.KYC_LIST, token=token, params={"page": 1, "limit": 1}
        )
        if data is None:
            return []
        if not isinstance(data, dict):
            raise ResponseFormatError(payload=data)
        return self._parse_list(Kyc, data.get("data") or [])

    # ======================
    # Wallets
    # ======================

    async def get_wallets(self, token: str) -> list[Wallet]:
        data = await self._request("GET", Endpoints.WALLETS, token=token)
        return self._parse_list(Wallet, data or [])

    async def get_balances(self, token: str) -> list[WalletBalance]:
        data = await self._request("GET", Endpoints.BALANCES, token=token)
        return self._parse_list(WalletBalance, data)

    async def get_default_wallet(self, token: str) -> Wallet:
        data = await self._request("GET", Endpoints.DEFAULT_WALLET, token=token)
        return self._parse(Wallet, data)

    async def set_default_wallet(self, token: str, wallet_id: str) -> Wallet:
        data = await self._request(
            "POST", Endpoints.DEFAULT_WALLET, token=token, json={"walletId": wallet_id}
        )
        return self._parse(Wallet, data)

    # ======================
    # Transfers
    # ======================

    async def calculate_fee(
        self,
        token: str,
        amount: str,
        currency: str,
        transfer_type: str,
        network: Optional[str] = None,
    ) -> FeeQuote:
        payload = {"amount": amount, "currency": currency, "type": transfer_type}
        if network:
            payload["network"] = network
        data = await self._request("POST", Endpoints.CALCULATE_FEE, token=token, json=payload)
        return self._parse(FeeQuote, data)

    async def validate_recipient(
        self,
        token: str,
        recipient_email: Optional[str] = None,
        wallet_address: Optional[str] = None,
        network: Optional[str] = None,
    ) -> None:
        """Raise ApiError when the backend refuses the recipient."""
        payload = {
            key: value
            for key, value in (
                ("recipientEmail", recipient_email),
                ("walletAddress", wallet_address),
                ("network", network),
            )
            if value
        }
        await self._request("POST", Endpoints.VALIDATE_RECIPIENT, token=token, json=payload)

    async def send_to_email(
        self,
        token: str,
        email: str,
        amount: str,
        currency: str,
        fee: str,
        fee_currency: str,
        total: str,
        purpose_code: str = "self",
    ) -> Transfer:
        data = await self._request(
            "POST",
            Endpoints.SEND,
            token=token,
            json={
                "email": email,
                "amount": amount,
                "currency": currency,
                "fee": fee,
                "feeCurrency": fee_currency,
                "total": total,
                "purposeCode": purpose_code,
            },
        )
        return self._parse(Transfer, data)

    async def withdraw_to_wallet(
        self,
        token: str,
        wallet_address: str,
        amount: str,
        currency: str,
        network: str,
        fee: str,
        fee_currency: str,
        total: str,
        purpose_code: str = "self",
    ) -> Transfer:
        data = await self._request(
            "POST",
            Endpoints.WITHDRAW,
            token=token,
            json={
                "walletAddress": wallet_address,
                "amount": amount,
                "currency": currency,
                "network": network,
                "fee": fee,
                "feeCurrency": fee_currency,
                "total": total,
                "purposeCode": purpose_code,
            },
        )
        return self._parse(Transfer, data)

    async def get_transfers(self, token: str, page: int = 1, limit: int = 10) -> TransferPage:
        data = await self._request(
            "GET", Endpoints.HISTORY, token=token, params={"page": page, "limit": limit}
        )
        return self._parse(TransferPage, data or {})

    # ======================
    # Notifications
    # ======================

    async def authorize_channel(self, token: str, socket_id: str, channel_name: str) -> dict:
        data = await self._request(
            "POST",
            Endpoints.NOTIFICATIONS_AUTH,
            token=token,
            json={"socket_id": socket_id, "channel_name": channel_name},
        )
        if not isinstance(data, dict):
            raise ResponseFormatError(payload=data)
        return data
