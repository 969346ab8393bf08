"""Balance, wallet, deposit address and history handlers."""

import logging

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from ledgerbot.bot.formatting import (
    format_balances,
    format_deposit_address,
    format_history,
    format_wallet,
)
from ledgerbot.bot.keyboards import (
    BALANCE_BUTTON,
    HISTORY_BUTTON,
    WALLETS_BUTTON,
    balance_keyboard,
    default_wallet_keyboard,
    history_keyboard,
    wallet_details_keyboard,
    wallets_keyboard,
)
from ledgerbot.bot.qr import address_qr
from ledgerbot.bot.replies import reply_error
from ledgerbot.container import BotServices
from ledgerbot.errors import BotError

logger = logging.getLogger(__name__)

router = Router()


async def _edit(callback: CallbackQuery, text: str, reply_markup=None) -> None:
    """Edit the callback's message; an unchanged refresh is not an error."""
    try:
        await callback.message.edit_text(text, reply_markup=reply_markup)
    except TelegramBadRequest as e:
        if "message is not modified" not in str(e):
            raise


@router.message(Command("balance", "b"), flags={"auth": True})
@router.message(F.text == BALANCE_BUTTON, flags={"auth": True})
async def cmd_balance(message: Message, services: BotServices, token: str) -> None:
    """Show balances of every wallet."""
    user_id = message.from_user.id
    try:
        balances = await services.wallets.get_balances(token)
    except BotError as e:
        logger.error(f"Balance fetch failed: user={user_id}: {e}")
        await reply_error(message, services, user_id, e)
        return

    display = services.preferences.get(user_id).display_format
    await message.answer(format_balances(balances, display), reply_markup=balance_keyboard())


@router.callback_query(F.data == "refresh_balances", flags={"auth": True})
async def handle_refresh_balances(callback: CallbackQuery, services: BotServices, token: str) -> None:
    if not callback.message:
        return

    user_id = callback.from_user.id
    try:
        balances = await services.wallets.get_balances(token)
    except BotError as e:
        logger.error(f"Balance refresh failed: user={user_id}: {e}")
        await callback.answer("Failed to update balances.")
        await reply_error(callback.message, services, user_id, e)
        return

    display = services.preferences.get(user_id).display_format
    await _edit(callback, format_balances(balances, display), reply_markup=balance_keyboard())
    await callback.answer("Balances updated!")


@router.message(Command("wallets", "w"), flags={"auth": True})
@router.message(F.text == WALLETS_BUTTON, flags={"auth": True})
async def cmd_wallets(message: Message, services: BotServices, token: str) -> None:
    user_id = message.from_user.id
    try:
        wallets = await services.wallets.get_wallets(token)
    except BotError as e:
        await reply_error(message, services, user_id, e)
        return

    if not wallets:
        await message.answer("No wallets found.")
        return
    await message.answer("👛 Your Wallets\n\nSelect a wallet:", reply_markup=wallets_keyboard(wallets))


@router.callback_query(F.data.startswith("wallet_details:"), flags={"auth": True})
async def handle_wallet_details(callback: CallbackQuery, services: BotServices, token: str) -> None:
    """Send the wallet details, as a QR code of the address when it has one."""
    if not callback.data or not callback.message:
        return

    wallet_id = callback.data.split(":", 1)[1]
    try:
        wallet = await services.wallets.get_wallet(token, wallet_id)
    except BotError as e:
        await callback.answer()
        await reply_error(callback.message, services, callback.from_user.id, e)
        return

    if wallet is None:
        await callback.answer("Wallet not found", show_alert=True)
        return

    keyboard = wallet_details_keyboard()
    if wallet.wallet_address:
        await callback.message.answer_photo(
            address_qr(wallet.wallet_address),
            caption=format_wallet(wallet),
            reply_markup=keyboard,
        )
    else:
        await callback.message.edit_text(format_wallet(wallet), reply_markup=keyboard)
    await callback.answer()


async def _send_deposit_address(
    message: Message, services: BotServices, user_id: int, token: str
) -> None:
    try:
        wallets = await services.wallets.get_wallets(token)
    except BotError as e:
        logger.error(f"Deposit address lookup failed: user={user_id}: {e}")
        await reply_error(message, services, user_id, e)
        return

    wallet = next((w for w in wallets if w.is_default), None)
    if wallet is None or not wallet.wallet_address:
        await message.answer(
            "❌ No default wallet found. Use /default_wallet to choose one first."
        )
        return

    await message.answer_photo(
        address_qr(wallet.wallet_address),
        caption=format_deposit_address(wallet),
    )


@router.message(Command("receive", "deposit"), flags={"auth": True})
async def cmd_receive(message: Message, services: BotServices, token: str) -> None:
    """Show the default wallet's deposit address with its QR code."""
    await _send_deposit_address(message, services, message.from_user.id, token)


@router.callback_query(F.data.in_({"show_receive", "show_deposit"}), flags={"auth": True})
async def handle_show_receive(callback: CallbackQuery, services: BotServices, token: str) -> None:
    if not callback.message:
        return

    await callback.answer()
    await _send_deposit_address(callback.message, services, callback.from_user.id, token)


@router.message(Command("default_wallet"), flags={"auth": True})
async def cmd_default_wallet(message: Message, services: BotServices, token: str) -> None:
    """Show the default wallet and offer to change it."""
    user_id = message.from_user.id
    try:
        wallets = await services.wallets.get_wallets(token)
    except BotError as e:
        await reply_error(message, services, user_id, e)
        return

    if not wallets:
        await message.answer("No wallets found.")
        return

    current = next((w for w in wallets if w.is_default), None)
    header = f"Current default wallet: {current.network}" if current else "No default wallet set."
    await message.answer(
        f"{header}\n\nSelect your new default wallet:",
        reply_markup=default_wallet_keyboard(wallets),
    )


@router.callback_query(F.data.startswith("set_default:"), flags={"auth": True})
async def handle_set_default(callback: CallbackQuery, services: BotServices, token: str) -> None:
    if not callback.data or not callback.message:
        return

    wallet_id = callback.data.split(":", 1)[1]
    try:
        wallet = await services.wallets.set_default_wallet(token, wallet_id)
    except BotError as e:
        await callback.answer()
        await reply_error(callback.message, services, callback.from_user.id, e)
        return

    await callback.message.edit_text(f"✅ Default wallet set to {wallet.network}.")
    await callback.answer()


async def _history_page(services: BotServices, user_id: int, token: str, page: int):
    history = await services.history.get_history(token, page)
    pages = services.history.page_count(history)
    display = services.preferences.get(user_id).display_format
    return format_history(history, pages, display), history_keyboard(history.page, pages)


@router.message(Command("history", "h"), flags={"auth": True})
@router.message(F.text == HISTORY_BUTTON, flags={"auth": True})
async def cmd_history(
    message: Message, services: BotServices, token: str, command: CommandObject = None
) -> None:
    """Show one page of transfers. Usage: /history [page]"""
    user_id = message.from_user.id
    page = 1
    if command is not None and command.args:
        if not command.args.strip().isdigit() or int(command.args) < 1:
            await message.answer("Usage: /history [page]")
            return
        page = int(command.args)

    try:
        text, keyboard = await _history_page(services, user_id, token, page)
    except BotError as e:
        logger.error(f"History fetch failed: user={user_id}: {e}")
        await reply_error(message, services, user_id, e)
        return

    await message.answer(text, reply_markup=keyboard)


@router.callback_query(F.data.startswith("history:"), flags={"auth": True})
async def handle_history_page(callback: CallbackQuery, services: BotServices, token: str) -> None:
    if not callback.data or not callback.message:
        return

    page = int(callback.data.split(":", 1)[1])
    try:
        text, keyboard = await _history_page(services, callback.from_user.id, token, page)
    except BotError as e:
        await callback.answer()
        await reply_error(callback.message, services, callback.from_user.id, e)
        return

    await callback.message.edit_text(text, reply_markup=keyboard)
    await callback.answer()


@router.callback_query(F.data == "refresh_history", flags={"auth": True})
async def handle_refresh_history(callback: CallbackQuery, services: BotServices, token: str) -> None:
    if not callback.message:
        return

    try:
        text, keyboard = await _history_page(services, callback.from_user.id, token, 1)
    except BotError as e:
        await callback.answer("Failed to update history.")
        await reply_error(callback.message, services, callback.from_user.id, e)
        return

    await _edit(callback, text, reply_markup=keyboard)
    await callback.answer("History updated!")
