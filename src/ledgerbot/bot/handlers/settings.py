"""Preference handlers."""

import logging

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from ledgerbot.bot.keyboards import SETTINGS_BUTTON, settings_currency_keyboard, settings_keyboard
from ledgerbot.container import BotServices
from ledgerbot.core.preferences import UserPreferences
from ledgerbot.currencies import supported_codes
from ledgerbot.errors import ValidationError

logger = logging.getLogger(__name__)

router = Router()


def _settings_text(prefs: UserPreferences) -> str:
    return (
        "⚙️ Settings\n\n"
        f"Default currency: {prefs.default_currency}\n"
        f"Notifications: {'Enabled' if prefs.notifications_enabled else 'Disabled'}\n"
        f"Display format: {prefs.display_format.value}"
    )


@router.message(Command("settings", "set"))
@router.message(F.text == SETTINGS_BUTTON)
async def cmd_settings(message: Message, services: BotServices) -> None:
    prefs = services.preferences.get(message.from_user.id)
    await message.answer(_settings_text(prefs), reply_markup=settings_keyboard(prefs))


async def _show(callback: CallbackQuery, prefs: UserPreferences) -> None:
    await callback.message.edit_text(_settings_text(prefs), reply_markup=settings_keyboard(prefs))


@router.callback_query(F.data == "settings_currency")
async def handle_currency_menu(callback: CallbackQuery) -> None:
    if not callback.message:
        return
    await callback.message.edit_text(
        "💱 Select your default currency:",
        reply_markup=settings_currency_keyboard(supported_codes()),
    )
    await callback.answer()


@router.callback_query(F.data.startswith("set_currency:"))
async def handle_set_currency(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.data or not callback.message:
        return
    code = callback.data.split(":", 1)[1]
    try:
        prefs = services.preferences.set_default_currency(callback.from_user.id, code)
    except ValidationError as e:
        await callback.answer(e.message, show_alert=True)
        return
    await _show(callback, prefs)
    await callback.answer("✅ Settings updated successfully!")


@router.callback_query(F.data == "settings_notifications")
async def handle_toggle_notifications(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.message:
        return
    user_id = callback.from_user.id
    enabled = services.preferences.toggle_notifications(user_id)
    await _show(callback, services.preferences.get(user_id))
    await callback.answer("🔔 Notifications enabled" if enabled else "🔕 Notifications disabled")


@router.callback_query(F.data.startswith("settings_format:"))
async def handle_display_format(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.data or not callback.message:
        return
    try:
        prefs = services.preferences.set_display_format(
            callback.from_user.id, callback.data.split(":", 1)[1]
        )
    except ValidationError as e:
        await callback.answer(e.message, show_alert=True)
        return
    await _show(callback, prefs)
    await callback.answer()


@router.callback_query(F.data == "settings_back")
async def handle_settings_back(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.message:
        return
    await _show(callback, services.preferences.get(callback.from_user.id))
    await callback.answer()
