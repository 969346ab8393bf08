"""Ledger API response contracts."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LedgerModel(BaseModel):
    """Base model accepting the API's camelCase payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class User(LedgerModel):
    """Authenticated ledger user."""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization_id: Optional[str] = None
    is_kyc_approved: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OtpRequest(LedgerModel):
    sid: str


class AuthResult(LedgerModel):
    """Tokens returned by the email-OTP authentication."""

    access_token: str
    refresh_token: Optional[str] = None
    user: Optional[User] = None


class FeeQuote(LedgerModel):
    """Fee computed for a prospective transfer."""

    fee: str
    fee_currency: str
    total: str


class TransferAccount(LedgerModel):
    type: Optional[str] = None
    network: Optional[str] = None
    wallet_address: Optional[str] = None
    payee_email: Optional[str] = None
    bank_name: Optional[str] = None


class Transfer(LedgerModel):
    """Transfer record as returned by send, withdraw and history."""

    id: str
    status: str = "pending"
    type: Optional[str] = None
    amount: str = "0"
    currency: Optional[str] = None
    total_fee: str = "0"
    fee_currency: Optional[str] = None
    amount_subtotal: Optional[str] = None
    created_at: Optional[str] = None
    payment_url: Optional[str] = None
    destination_account: Optional[TransferAccount] = None


class TransferPage(LedgerModel):
    """One page of transfer history."""

    transfers: list[Transfer] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10


class Wallet(LedgerModel):
    id: str
    network: str
    wallet_address: Optional[str] = None
    wallet_type: Optional[str] = None
    is_default: bool = False
    created_at: Optional[str] = None


class TokenBalance(LedgerModel):
    symbol: str
    balance: str
    decimals: Optional[int] = None
    address: Optional[str] = None


class WalletBalance(LedgerModel):
    wallet_id: str
    network: str
    is_default: bool = False
    balances: list[TokenBalance] = Field(default_factory=list)


class Kyc(LedgerModel):
    id: str
    status: str
    type: Optional[str] = None
    country: Optional[str] = None


class DepositEvent(LedgerModel):
    """Deposit notification pushed on an organization channel."""

    user_id: Optional[str] = None
    amount: str = "0"
    currency: Optional[str] = None
    status: Optional[str] = None
    network: Optional[str] = None
    transaction_id: Optional[str] = None
