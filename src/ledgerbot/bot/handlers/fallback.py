"""Replies for input no other handler claimed."""

import logging

from aiogram import F, Router
from aiogram.types import Message

logger = logging.getLogger(__name__)

router = Router()


@router.message(F.text.startswith("/"))
async def unknown_command(message: Message) -> None:
    logger.debug(f"Unknown command received: {message.text}")
    await message.answer("Unknown command. Use /help to see available commands.")
