"""Login, logout and KYC handlers."""

import logging

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message, ReplyKeyboardRemove

from ledgerbot.bot.filters import AwaitingLogin
from ledgerbot.bot.formatting import format_profile
from ledgerbot.bot.keyboards import kyc_keyboard, main_menu_keyboard
from ledgerbot.bot.replies import reply_error
from ledgerbot.container import BotServices
from ledgerbot.core.login import LoginStep
from ledgerbot.errors import BotError, user_message

logger = logging.getLogger(__name__)

router = Router()


@router.message(Command("login"), flags={"rate_limit": "login"})
async def cmd_login(message: Message, services: BotServices) -> None:
    """Start the email-OTP login."""
    if not message.from_user:
        return
    user_id = message.from_user.id

    try:
        if await services.auth.has_valid_session(user_id):
            await message.answer("You are already logged in. Use /logout to sign out first.")
            return
    except BotError as e:
        await message.answer(user_message(e))
        return

    services.transfers.discard(user_id)
    services.auth.begin_login(user_id)
    await message.answer("Please enter your email address:")


@router.message(AwaitingLogin(LoginStep.AWAITING_EMAIL), flags={"rate_limit": "login"})
async def handle_login_email(message: Message, services: BotServices) -> None:
    """Request a one-time code for the entered email."""
    try:
        await services.auth.request_otp(message.from_user.id, message.text)
    except BotError as e:
        logger.warning(f"OTP request failed: user={message.from_user.id}: {e}")
        await message.answer(f"Failed to send OTP: {e.message}\n\nPlease enter your email again:")
        return

    await message.answer("Please enter the 6-digit OTP sent to your email:")


@router.message(AwaitingLogin(LoginStep.AWAITING_OTP), flags={"rate_limit": "otp"})
async def handle_login_otp(message: Message, services: BotServices) -> None:
    """Exchange the code for a session and show the profile."""
    user_id = message.from_user.id
    try:
        await services.auth.complete_login(user_id, message.chat.id, message.text)
    except BotError as e:
        logger.warning(f"Authentication failed: user={user_id}: {e}")
        await message.answer(f"Authentication failed: {e.message}")
        return

    await message.answer(
        "Login successful! 🎉\n\n"
        "You will receive notifications for deposits and important updates.\n"
        "Use /help to see available commands.",
        reply_markup=main_menu_keyboard(),
    )

    token = services.sessions.get(user_id).token
    try:
        profile = await services.auth.get_profile(token)
    except BotError as e:
        logger.warning(f"Profile fetch after login failed: user={user_id}: {e}")
        return

    await message.answer(
        f"{format_profile(profile)}\n\n"
        "🔔 Deposit notifications are enabled. Use /settings to manage preferences."
    )


@router.message(Command("logout"))
async def cmd_logout(message: Message, services: BotServices) -> None:
    if not message.from_user:
        return
    user_id = message.from_user.id

    services.transfers.discard(user_id)
    if not services.auth.logout(user_id):
        await message.answer("You are not logged in.")
        return

    await message.answer(
        "You have been logged out successfully.\nYou will no longer receive notifications.",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(Command("kyc"), flags={"auth": True, "rate_limit": "kyc"})
async def cmd_kyc(message: Message, services: BotServices, token: str) -> None:
    """Show the KYC status with a link to finish verification."""
    try:
        profile = await services.auth.get_profile(token)
    except BotError as e:
        logger.error(f"KYC check failed: user={message.from_user.id}: {e}")
        await reply_error(message, services, message.from_user.id, e)
        return

    status = "✅ Approved" if profile.is_kyc_approved else "⏳ Pending"
    text = f"KYC Status Check:\n\nEmail: {profile.email}\nStatus: {status}"
    updated = profile.updated_at or profile.created_at
    if updated:
        text += f"\nLast Updated: {updated[:10]}"

    if profile.is_kyc_approved:
        await message.answer(text)
        return

    url = f"{services.settings.platform_url.rstrip('/')}/kyc"
    await message.answer(
        f"{text}\n\nYour KYC is not yet approved. Please complete your verification at:\n{url}",
        reply_markup=kyc_keyboard(url),
    )
