"""Start, help, support and cancel handlers."""

import logging

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message, ReplyKeyboardRemove

from ledgerbot.bot.formatting import HELP_TEXT, WELCOME_TEXT
from ledgerbot.bot.keyboards import HELP_BUTTON, main_menu_keyboard
from ledgerbot.container import BotServices

logger = logging.getLogger(__name__)

router = Router()


@router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    """Handle /start command - show welcome."""
    name = message.from_user.first_name if message.from_user else None
    await message.answer(
        WELCOME_TEXT.format(name=name or "there"), reply_markup=main_menu_keyboard()
    )


@router.message(Command("help"))
@router.message(F.text == HELP_BUTTON)
async def cmd_help(message: Message) -> None:
    """Handle /help command."""
    await message.answer(HELP_TEXT)


@router.message(Command("support"))
async def cmd_support(message: Message, services: BotServices) -> None:
    await message.answer(
        "🆘 Need help?\n\n"
        f"Contact our support team at {services.settings.support_contact}"
    )


@router.message(Command("cancel"))
@router.message(F.text.lower() == "cancel")
async def cmd_cancel(message: Message, services: BotServices) -> None:
    """Abandon any login attempt or transfer in progress."""
    if message.from_user:
        services.end_conversations(message.from_user.id)
    await message.answer("Current operation canceled.", reply_markup=ReplyKeyboardRemove())
