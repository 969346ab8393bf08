"""Supported currencies, their precision and minimum transfer amounts."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional, Union


@dataclass(frozen=True)
class Currency:
    """Display and transfer rules for one currency."""

    code: str
    name: str
    symbol: str
    decimals: int
    minimum: Decimal
    networks: tuple[str, ...] = field(default_factory=tuple)

    @property
    def withdrawable(self) -> bool:
        """Only currencies with at least one network can leave to a wallet."""
        return bool(self.networks)


CURRENCIES: dict[str, Currency] = {
    "USD": Currency("USD", "US Dollar", "$", 2, Decimal("1")),
    "USDT": Currency(
        "USDT", "Tether", "₮", 6, Decimal("1"), ("ethereum", "tron", "bsc")
    ),
    "BTC": Currency("BTC", "Bitcoin", "₿", 8, Decimal("0.0001"), ("bitcoin", "lightning")),
    "ETH": Currency(
        "ETH", "Ethereum", "Ξ", 18, Decimal("0.01"), ("ethereum", "arbitrum", "optimism")
    ),
}

DEFAULT_CURRENCY = "USD"


def get_currency(code: Optional[str]) -> Optional[Currency]:
    """Look up a currency by code (case-insensitive)."""
    if not code:
        return None
    return CURRENCIES.get(code.upper())


def supported_codes(withdrawable_only: bool = False) -> list[str]:
    """Currency codes in display order."""
    return [c.code for c in CURRENCIES.values() if c.withdrawable or not withdrawable_only]


def networks_for(code: str) -> tuple[str, ...]:
    currency = get_currency(code)
    return currency.networks if currency else ()


def format_amount(amount: Union[str, Decimal, int, float], code: Optional[str]) -> str:
    """Format an amount with the currency symbol and at most its decimals.

    Unknown currencies are rendered without a symbol using up to 8 decimals.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return str(amount)

    currency = get_currency(code)
    decimals = currency.decimals if currency else 8
    symbol = currency.symbol if currency else ""

    try:
        quantized = value.quantize(Decimal(1).scaleb(-decimals))
    except InvalidOperation:
        quantized = value
    text = f"{quantized:,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{symbol}{text}"


def format_address(address: str, length: int = 8) -> str:
    """Shorten a wallet address for display."""
    if len(address) <= length * 2:
        return address
    return f"{address[:length]}...{address[-length:]}"
