"""Send and withdraw conversation handlers.

All conversation state lives in ``TransferStateMachine``; these handlers
only translate chat events into its operations and render the outcome.
"""

import logging

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from ledgerbot.bot.filters import InTransfer
from ledgerbot.bot.formatting import render_result
from ledgerbot.bot.keyboards import SEND_BUTTON, send_options_keyboard
from ledgerbot.bot.replies import reply_error
from ledgerbot.container import BotServices
from ledgerbot.core.transfer import EditTarget, Outcome, StepResult
from ledgerbot.errors import AuthError

logger = logging.getLogger(__name__)

router = Router()


async def _reply(message: Message, services: BotServices, user_id: int, result: StepResult) -> None:
    if isinstance(result.error, AuthError) and result.outcome is not Outcome.INVALID:
        await reply_error(message, services, user_id, result.error)
        return

    rendered = render_result(result)
    if rendered is None:
        return
    text, keyboard = rendered
    await message.answer(text, reply_markup=keyboard)


@router.message(Command("send", "s"), flags={"auth": True})
@router.message(F.text == SEND_BUTTON, flags={"auth": True})
async def cmd_send(message: Message) -> None:
    await message.answer("📤 How would you like to send?", reply_markup=send_options_keyboard())


@router.message(Command("withdraw"), flags={"auth": True})
async def cmd_withdraw(message: Message, services: BotServices) -> None:
    user_id = message.from_user.id
    await _reply(message, services, user_id, services.transfers.start_wallet_withdraw(user_id))


@router.callback_query(F.data == "send_email", flags={"auth": True})
async def handle_send_email(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.message:
        return
    user_id = callback.from_user.id
    preferred = services.preferences.get(user_id).default_currency
    result = services.transfers.start_email_transfer(user_id, preferred)
    await callback.answer()
    await _reply(callback.message, services, user_id, result)


@router.callback_query(F.data == "send_withdraw", flags={"auth": True})
async def handle_send_withdraw(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.message:
        return
    user_id = callback.from_user.id
    await callback.answer()
    await _reply(callback.message, services, user_id, services.transfers.start_wallet_withdraw(user_id))


@router.message(InTransfer(), flags={"auth": True})
async def handle_transfer_input(message: Message, services: BotServices, token: str) -> None:
    """Free text for the current step: email, address or amount."""
    user_id = message.from_user.id
    result = await services.transfers.submit_text(user_id, message.text, token)
    await _reply(message, services, user_id, result)


@router.callback_query(F.data.startswith("select_currency:"), flags={"auth": True})
async def handle_select_currency(callback: CallbackQuery, services: BotServices, token: str) -> None:
    if not callback.data or not callback.message:
        return
    user_id = callback.from_user.id
    code = callback.data.split(":", 1)[1]
    await callback.answer()
    result = await services.transfers.submit_currency(user_id, code, token)
    await _reply(callback.message, services, user_id, result)


@router.callback_query(F.data.startswith("select_network:"), flags={"auth": True})
async def handle_select_network(callback: CallbackQuery, services: BotServices, token: str) -> None:
    if not callback.data or not callback.message:
        return
    user_id = callback.from_user.id
    network = callback.data.split(":", 1)[1]
    await callback.answer()
    result = await services.transfers.submit_network(user_id, network, token)
    await _reply(callback.message, services, user_id, result)


@router.callback_query(F.data == "confirm_transfer", flags={"auth": True})
async def handle_confirm(callback: CallbackQuery, services: BotServices, token: str) -> None:
    """Execute the quoted transfer."""
    if not callback.message:
        return
    user_id = callback.from_user.id
    await callback.answer("Processing...")
    result = await services.transfers.confirm(user_id, token)
    if result.outcome is Outcome.IGNORED and result.state is None:
        await callback.message.answer("No transfer in progress. Use /send to start one.")
        return
    await _reply(callback.message, services, user_id, result)


@router.callback_query(F.data == "edit_transfer")
async def handle_edit_menu(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.message:
        return
    user_id = callback.from_user.id
    await callback.answer()
    await _reply(callback.message, services, user_id, services.transfers.edit(user_id))


@router.callback_query(F.data.in_({"edit_currency", "edit_amount", "edit_recipient"}))
async def handle_edit_field(callback: CallbackQuery, services: BotServices) -> None:
    """Reopen one field; the others are kept."""
    if not callback.data or not callback.message:
        return
    user_id = callback.from_user.id
    target = EditTarget(callback.data.removeprefix("edit_"))
    await callback.answer()
    await _reply(callback.message, services, user_id, services.transfers.edit(user_id, target))


@router.callback_query(F.data == "cancel_transfer")
async def handle_cancel_transfer(callback: CallbackQuery, services: BotServices) -> None:
    if not callback.message:
        return
    services.transfers.cancel(callback.from_user.id)
    await callback.message.edit_text("Transfer cancelled.")
    await callback.answer()
