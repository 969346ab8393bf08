"""Telegram keyboard builders."""

from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)

from ledgerbot.core.preferences import DisplayFormat, UserPreferences
from ledgerbot.ledger.models import Wallet

BALANCE_BUTTON = "💰 Balance"
WALLETS_BUTTON = "👛 Wallets"
SEND_BUTTON = "📤 Send"
HISTORY_BUTTON = "📊 History"
SETTINGS_BUTTON = "⚙️ Settings"
HELP_BUTTON = "❓ Help"


def main_menu_keyboard() -> ReplyKeyboardMarkup:
    """Create main menu keyboard."""
    keyboard = [
        [KeyboardButton(text=BALANCE_BUTTON), KeyboardButton(text=WALLETS_BUTTON)],
        [KeyboardButton(text=SEND_BUTTON), KeyboardButton(text=HISTORY_BUTTON)],
        [KeyboardButton(text=SETTINGS_BUTTON), KeyboardButton(text=HELP_BUTTON)],
    ]
    return ReplyKeyboardMarkup(keyboard=keyboard, resize_keyboard=True)


def _cancel_row() -> list[InlineKeyboardButton]:
    return [InlineKeyboardButton(text="❌ Cancel", callback_data="cancel_transfer")]


def send_options_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="📧 Send to Email", callback_data="send_email")],
            [InlineKeyboardButton(text="🏦 Send to Wallet", callback_data="send_withdraw")],
            _cancel_row(),
        ]
    )


def selection_keyboard(options: list[str], callback_prefix: str) -> InlineKeyboardMarkup:
    """Options three per row, each carrying ``prefix:option``."""
    buttons = []
    row = []

    for option in options:
        row.append(InlineKeyboardButton(text=option, callback_data=f"{callback_prefix}:{option}"))
        if len(row) == 3:
            buttons.append(row)
            row = []

    if row:
        buttons.append(row)

    buttons.append(_cancel_row())
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def currency_keyboard(codes: list[str]) -> InlineKeyboardMarkup:
    return selection_keyboard(codes, "select_currency")


def network_keyboard(networks: tuple[str, ...]) -> InlineKeyboardMarkup:
    return selection_keyboard(list(networks), "select_network")


def confirm_transfer_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Confirm", callback_data="confirm_transfer"),
                InlineKeyboardButton(text="✏️ Edit", callback_data="edit_transfer"),
            ],
            _cancel_row(),
        ]
    )


def edit_transfer_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="💱 Currency", callback_data="edit_currency"),
                InlineKeyboardButton(text="💵 Amount", callback_data="edit_amount"),
            ],
            [InlineKeyboardButton(text="👤 Recipient", callback_data="edit_recipient")],
            _cancel_row(),
        ]
    )


def cancel_transfer_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[_cancel_row()])


def wallets_keyboard(wallets: list[Wallet]) -> InlineKeyboardMarkup:
    """One button per wallet opening its details."""
    buttons = [
        [
            InlineKeyboardButton(
                text=f"{'⭐ ' if wallet.is_default else ''}{wallet.network}",
                callback_data=f"wallet_details:{wallet.id}",
            )
        ]
        for wallet in wallets
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def default_wallet_keyboard(wallets: list[Wallet]) -> InlineKeyboardMarkup:
    buttons = [
        [
            InlineKeyboardButton(
                text=f"{'✅ ' if wallet.is_default else ''}{wallet.network}",
                callback_data=f"set_default:{wallet.id}",
            )
        ]
        for wallet in wallets
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def history_keyboard(page: int, pages: int) -> InlineKeyboardMarkup:
    """Previous/next paging buttons above a refresh of the first page."""
    row = []
    if page > 1:
        row.append(InlineKeyboardButton(text="⬅️ Previous", callback_data=f"history:{page - 1}"))
    if page < pages:
        row.append(InlineKeyboardButton(text="Next ➡️", callback_data=f"history:{page + 1}"))
    buttons = [row] if row else []
    buttons.append([InlineKeyboardButton(text="🔄 Refresh", callback_data="refresh_history")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def balance_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="🔄 Refresh", callback_data="refresh_balances"),
                InlineKeyboardButton(text="📥 Deposit", callback_data="show_deposit"),
            ]
        ]
    )


def wallet_details_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="📥 Receive", callback_data="show_receive")],
        ]
    )


def kyc_keyboard(url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="Complete KYC", url=url)]]
    )


def settings_keyboard(prefs: UserPreferences) -> InlineKeyboardMarkup:
    notifications = "🔔 On" if prefs.notifications_enabled else "🔕 Off"
    next_format = (
        DisplayFormat.COMPACT
        if prefs.display_format is DisplayFormat.DETAILED
        else DisplayFormat.DETAILED
    )
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(
                    text=f"💱 Default currency: {prefs.default_currency}",
                    callback_data="settings_currency",
                )
            ],
            [
                InlineKeyboardButton(
                    text=f"Notifications: {notifications}",
                    callback_data="settings_notifications",
                )
            ],
            [
                InlineKeyboardButton(
                    text=f"📋 Display: {prefs.display_format.value}",
                    callback_data=f"settings_format:{next_format.value}",
                )
            ],
        ]
    )


def settings_currency_keyboard(codes: list[str]) -> InlineKeyboardMarkup:
    buttons = [
        [InlineKeyboardButton(text=code, callback_data=f"set_currency:{code}") for code in codes]
    ]
    buttons.append([InlineKeyboardButton(text="⬅️ Back", callback_data="settings_back")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)
