"""Email-OTP login, profile lookup and logout."""

import logging
from typing import Optional

from ledgerbot.core.login import LoginFlow, LoginStep
from ledgerbot.core.sessions import SessionStore
from ledgerbot.errors import AuthError, BotError, ValidationError
from ledgerbot.ledger.client import LedgerClient
from ledgerbot.ledger.models import User
from ledgerbot.validation import is_valid_otp, validate_email

logger = logging.getLogger(__name__)


class AuthService:
    """Drives the login conversation and owns session creation."""

    def __init__(self, ledger: LedgerClient, sessions: SessionStore, logins: LoginFlow):
        self._ledger = ledger
        self._sessions = sessions
        self._logins = logins

    async def get_profile(self, token: str) -> User:
        """Fetch the profile and fold in the latest KYC decision."""
        user = await self._ledger.get_profile(token)
        try:
            records = await self._ledger.list_kyc(token)
        except BotError as e:
            logger.warning(f"Failed to fetch KYC status: {e}")
            return user

        if records:
            user = user.model_copy(update={"is_kyc_approved": records[0].status == "approved"})
        return user

    async def validate_session(self, token: str) -> bool:
        try:
            await self._ledger.get_profile(token)
        except AuthError:
            return False
        return True

    async def has_valid_session(self, user_id: int) -> bool:
        """True when the stored token is still accepted by the ledger."""
        session = self._sessions.get(user_id)
        if session is None or not session.token:
            return False
        if await self.validate_session(session.token):
            return True
        self._sessions.remove(user_id)
        return False

    def begin_login(self, user_id: int) -> None:
        self._logins.start(user_id)

    async def request_otp(self, user_id: int, email: str) -> str:
        """Send a one-time code to ``email`` and move the attempt forward.

        Raises:
            ValidationError: If the email is malformed
            BotError: If the ledger refused the request
        """
        if not self._logins.is_awaiting(user_id, LoginStep.AWAITING_EMAIL):
            raise ValidationError("No login in progress. Use /login to start.")

        email = validate_email(email)
        response = await self._ledger.request_otp(email)
        self._logins.otp_requested(user_id, email, response.sid)
        logger.info(f"OTP requested: user={user_id}")
        return response.sid

    async def complete_login(self, user_id: int, chat_id: int, otp: str) -> User:
        """Exchange the code for tokens and open the session.

        The attempt stays open on failure so the user can re-enter the code.
        """
        attempt = self._logins.get(user_id)
        if attempt is None or attempt.step is not LoginStep.AWAITING_OTP:
            raise ValidationError("No login in progress. Use /login to start.")
        if not is_valid_otp(otp.strip()):
            raise ValidationError("The code must be 6 digits.")

        result = await self._ledger.authenticate(attempt.email, otp.strip(), attempt.sid)
        if not result.access_token:
            raise AuthError("Access token is missing")

        user: Optional[User] = result.user
        self._sessions.store(
            user_id,
            chat_id,
            token=result.access_token,
            refresh_token=result.refresh_token,
            organization_id=user.organization_id if user else None,
            ledger_user_id=user.id if user else None,
            email=attempt.email,
        )
        self._logins.finish(user_id)
        logger.info(
            f"User authenticated and session stored: user={user_id} chat={chat_id} "
            f"org={user.organization_id if user else None}"
        )
        return user

    def logout(self, user_id: int) -> bool:
        """Forget the session. Returns False when nobody was logged in."""
        session = self._sessions.get(user_id)
        self._logins.cancel(user_id)
        if session is None or not session.token:
            return False
        self._sessions.remove(user_id)
        logger.info(f"User logged out: user={user_id}")
        return True
