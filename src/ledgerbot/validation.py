"""Input validation for recipients and amounts.

Validators return the normalized value or raise ValidationError.
"""

import re
from decimal import Decimal, InvalidOperation

from ledgerbot.currencies import format_amount, get_currency
from ledgerbot.errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
AMOUNT_RE = re.compile(r"^\d+(\.\d+)?$")
OTP_RE = re.compile(r"^\d{6}$")

EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
BTC_ADDRESS_RE = re.compile(r"^(1|3|bc1)[a-zA-Z0-9]{25,62}$")
TRON_ADDRESS_RE = re.compile(r"^T[1-9A-HJ-NP-Za-km-z]{33}$")
LIGHTNING_RE = re.compile(r"^ln(bc|tb|bcrt)[0-9a-z]{20,}$", re.IGNORECASE)

NETWORK_ADDRESS_PATTERNS: dict[str, re.Pattern] = {
    "ethereum": EVM_ADDRESS_RE,
    "arbitrum": EVM_ADDRESS_RE,
    "optimism": EVM_ADDRESS_RE,
    "bsc": EVM_ADDRESS_RE,
    "polygon": EVM_ADDRESS_RE,
    "bitcoin": BTC_ADDRESS_RE,
    "tron": TRON_ADDRESS_RE,
    "lightning": LIGHTNING_RE,
}


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_valid_otp(code: str) -> bool:
    return bool(OTP_RE.match(code))


def validate_email(email: str) -> str:
    email = email.strip()
    if not is_valid_email(email):
        raise ValidationError("Invalid email format. Please try again.")
    return email


def validate_address_shape(address: str) -> str:
    """Check an address before its network is known.

    Only rejects input that cannot be an address on any network; the
    network-specific check runs once the network has been chosen.
    """
    address = address.strip()
    if not address or any(ch.isspace() for ch in address) or "@" in address:
        raise ValidationError("Invalid wallet address. Please check and try again.")
    return address


def is_valid_wallet_address(address: str, network: str) -> bool:
    pattern = NETWORK_ADDRESS_PATTERNS.get(network.lower())
    if pattern is None:
        return False
    return bool(pattern.match(address))


def validate_wallet_address(address: str, network: str) -> str:
    if not is_valid_wallet_address(address, network):
        raise ValidationError(f"The address is not a valid {network} address.")
    return address


def validate_amount(amount: str, currency_code: str) -> Decimal:
    """Parse a positive amount within the currency's precision and minimum."""
    text = amount.strip().replace(",", "")
    currency = get_currency(currency_code)
    if currency is None:
        raise ValidationError(f"Unsupported currency: {currency_code}")

    if not AMOUNT_RE.match(text):
        raise ValidationError("Invalid amount. Please enter a positive number.")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationError("Invalid amount. Please enter a positive number.")
    if value <= 0:
        raise ValidationError("Invalid amount. Please enter a positive number.")

    fraction = text.split(".")[1] if "." in text else ""
    if len(fraction) > currency.decimals:
        raise ValidationError(
            f"{currency.code} supports at most {currency.decimals} decimal places."
        )

    if value < currency.minimum:
        raise ValidationError(
            f"Amount must be at least {format_amount(currency.minimum, currency.code)} "
            f"{currency.code}"
        )

    return value
