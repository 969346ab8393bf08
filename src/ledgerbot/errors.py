"""Error taxonomy shared by the ledger client, services and bot handlers."""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "An error occurred while processing your request. Please try again."


class BotError(Exception):
    """Base class for expected, user-presentable failures."""

    code = "BOT_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(BotError):
    """Credential is missing, invalid or expired."""

    code = "AUTH_ERROR"


class RateLimitError(BotError):
    """Request rejected by a rate limit (local or remote)."""

    code = "RATE_LIMIT_ERROR"


class ValidationError(BotError):
    """Malformed user input."""

    code = "VALIDATION_ERROR"


class ApiError(BotError):
    """The ledger API rejected the request."""

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ResponseFormatError(ApiError):
    """The ledger accepted the request but its response body is unreadable."""

    code = "RESPONSE_FORMAT_ERROR"

    def __init__(self, message: str = "Invalid response format from server", **kwargs):
        super().__init__(message, **kwargs)


class NetworkError(BotError):
    """No response was received from the ledger API."""

    code = "NETWORK_ERROR"


def _backend_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        if message:
            return str(message)
    return None


def raise_for_response(response: httpx.Response) -> None:
    """Raise the matching BotError for a non-2xx ledger response."""
    if response.is_success:
        return

    status = response.status_code
    message = _backend_message(response)
    logger.error(
        f"Ledger API request failed: {response.request.method} "
        f"{response.request.url.path} -> {status} ({message})"
    )

    if status == 401:
        raise AuthError(message or "Authentication failed. Please log in again.")
    if status == 403:
        raise AuthError(message or "You do not have permission to perform this action.")
    if status == 429:
        raise RateLimitError(message or "Too many requests. Please try again later.")

    try:
        payload = response.json()
    except ValueError:
        payload = response.text
    raise ApiError(
        message or "An error occurred while processing your request.",
        status_code=status,
        payload=payload,
    )


def user_message(exc: Exception) -> str:
    """Render an exception as the reply shown to the user."""
    if isinstance(exc, AuthError):
        return f"⚠️ Authentication error: {exc.message}"
    if isinstance(exc, RateLimitError):
        return f"⏳ Rate limit exceeded: {exc.message}"
    if isinstance(exc, ValidationError):
        return f"❌ {exc.message}"
    if isinstance(exc, NetworkError):
        return f"🔌 {exc.message}"
    if isinstance(exc, ApiError):
        return f"🔴 {exc.message}"
    if isinstance(exc, BotError):
        return f"❌ {exc.message}"
    return GENERIC_FAILURE
