"""Message texts and renderers shared by the handlers."""

from typing import Optional

from aiogram.types import InlineKeyboardMarkup

from ledgerbot.bot import keyboards
from ledgerbot.core.preferences import DisplayFormat
from ledgerbot.core.transfer import (
    EmailTransfer,
    Outcome,
    StepResult,
    TransferState,
    TransferStep,
    TransferType,
)
from ledgerbot.currencies import format_address, format_amount, get_currency, supported_codes
from ledgerbot.ledger.models import Transfer, TransferPage, User, Wallet, WalletBalance

WELCOME_TEXT = """🤖 Welcome to Ledger Bot, {name}!

I can help you manage your balances, send transfers and withdraw to external wallets.

Use /login to sign in, or /help to see available commands."""

HELP_TEXT = """Available commands:

🔐 Authentication
  /login    - Login with your email
  /logout   - Logout from your account
  /kyc      - Check your KYC status

💰 Wallet
  /balance (/b)     - Check your wallet balances
  /wallets (/w)     - List your wallets
  /default_wallet   - Choose your default wallet
  /receive          - Show your deposit address

📤 Transfers
  /send (/s)   - Send to an email or a wallet
  /withdraw    - Withdraw to an external wallet
  /history (/h) [page] - View transaction history

⚙️ Other
  /settings (/set) - Manage your preferences
  /cancel   - Cancel the current operation
  /support  - Contact support"""


def format_profile(user: User) -> str:
    kyc = "✅ Approved" if user.is_kyc_approved else "⏳ Pending"
    lines = ["Account Information:", f"Email: {user.email}", f"KYC Status: {kyc}"]
    if user.created_at:
        lines.append(f"Member since: {user.created_at[:10]}")
    return "\n".join(lines)


def format_balances(balances: list[WalletBalance], display: DisplayFormat) -> str:
    if not balances:
        return "No wallets found."

    lines = ["💰 Your Balances", ""]
    for wallet in balances:
        marker = " ⭐" if wallet.is_default else ""
        if display is DisplayFormat.COMPACT:
            holdings = ", ".join(
                f"{format_amount(b.balance, b.symbol)} {b.symbol}" for b in wallet.balances
            )
            lines.append(f"{wallet.network}{marker}: {holdings or 'empty'}")
            continue

        lines.append(f"🌐 {wallet.network}{marker}")
        if not wallet.balances:
            lines.append("  No balance")
        for token in wallet.balances:
            lines.append(f"  {token.symbol}: {format_amount(token.balance, token.symbol)}")
        lines.append("")
    return "\n".join(lines).rstrip()


def format_wallet(wallet: Wallet) -> str:
    lines = [
        "👛 Wallet Details",
        "",
        f"Network: {wallet.network}",
        f"Address: {wallet.wallet_address or 'n/a'}",
    ]
    if wallet.wallet_type:
        lines.append(f"Type: {wallet.wallet_type}")
    lines.append(f"Default: {'Yes' if wallet.is_default else 'No'}")
    return "\n".join(lines)


def format_deposit_address(wallet: Wallet) -> str:
    return (
        "📥 Your Deposit Address\n\n"
        f"Network: {wallet.network}\n"
        f"Address: {wallet.wallet_address}\n\n"
        f"Note: Only send assets supported on {wallet.network} to this address."
    )


def format_transfer(transfer: Transfer, display: DisplayFormat = DisplayFormat.DETAILED) -> str:
    amount = f"{format_amount(transfer.amount, transfer.currency)} {transfer.currency or ''}".strip()
    if display is DisplayFormat.COMPACT:
        date = (transfer.created_at or "")[:10]
        return f"{date} {(transfer.type or '').upper()} {amount} [{transfer.status}]".strip()

    lines = [f"💸 Transfer {transfer.id}"]
    if transfer.type:
        lines.append(f"Type: {transfer.type.upper()}")
    lines.append(f"Amount: {amount}")
    lines.append(f"Status: {transfer.status}")
    if transfer.created_at:
        lines.append(f"Date: {transfer.created_at[:16].replace('T', ' ')}")
    if transfer.total_fee not in ("0", ""):
        lines.append(
            f"Fee: {format_amount(transfer.total_fee, transfer.fee_currency)} "
            f"{transfer.fee_currency or ''}".rstrip()
        )

    account = transfer.destination_account
    if account is not None:
        if account.payee_email:
            lines.append(f"To: {account.payee_email}")
        elif account.wallet_address:
            lines.append(f"To: {format_address(account.wallet_address)}")
        if account.network:
            lines.append(f"Network: {account.network}")
    return "\n".join(lines)


def format_history(history: TransferPage, pages: int, display: DisplayFormat) -> str:
    if not history.transfers:
        return "No transactions found."

    separator = "\n" if display is DisplayFormat.COMPACT else "\n\n"
    body = separator.join(format_transfer(t, display) for t in history.transfers)
    return f"📊 Transaction History (page {history.page}/{pages})\n\n{body}"


# ======================
# Transfer conversation
# ======================


def transfer_summary(state: TransferState) -> str:
    """Confirmation text for a quoted transfer."""
    kind = "Email transfer" if state.type is TransferType.EMAIL else "Wallet withdrawal"
    lines = [
        "✅ Please confirm your transfer:",
        "",
        f"Type: {kind}",
        f"To: {state.recipient}",
    ]
    if state.network:
        lines.append(f"Network: {state.network}")
    lines.append(f"Amount: {format_amount(state.amount, state.currency)} {state.currency}")
    if state.fee is not None:
        fee = state.fee
        lines.append(f"Fee: {format_amount(fee.fee, fee.fee_currency)} {fee.fee_currency}")
        lines.append(f"Total: {format_amount(fee.total, fee.fee_currency)} {fee.fee_currency}")
    return "\n".join(lines)


def step_prompt(state: TransferState) -> tuple[str, Optional[InlineKeyboardMarkup]]:
    """Prompt and keyboard asking for the input of ``state.step``."""
    step = state.step
    if step is TransferStep.AWAITING_EMAIL:
        return "📧 Please enter the recipient's email address:", keyboards.cancel_transfer_keyboard()

    if step is TransferStep.AWAITING_ADDRESS:
        return "🔑 Please enter the recipient's wallet address:", keyboards.cancel_transfer_keyboard()

    if step is TransferStep.AWAITING_AMOUNT:
        code = state.amount_currency
        currency = get_currency(code)
        minimum = f" (minimum {format_amount(currency.minimum, code)})" if currency else ""
        return (
            f"💰 Please enter the amount to send in {code}{minimum}:",
            keyboards.cancel_transfer_keyboard(),
        )

    if step is TransferStep.AWAITING_CURRENCY:
        codes = supported_codes(withdrawable_only=state.type is TransferType.WITHDRAW)
        return "💱 Please select the currency:", keyboards.currency_keyboard(codes)

    if step is TransferStep.AWAITING_NETWORK:
        currency = get_currency(state.currency)
        networks = currency.networks if currency else ()
        return "🌐 Please select the network:", keyboards.network_keyboard(networks)

    return transfer_summary(state), keyboards.confirm_transfer_keyboard()


def render_result(result: StepResult) -> Optional[tuple[str, Optional[InlineKeyboardMarkup]]]:
    """Reply for a state machine transition, or None when nothing should be sent."""
    outcome = result.outcome
    state = result.state

    if outcome is Outcome.IGNORED:
        return None

    if outcome is Outcome.PROMPT:
        return step_prompt(state)

    if outcome is Outcome.INVALID:
        text, keyboard = step_prompt(state)
        return f"❌ {result.error_message}\n\n{text}", keyboard

    if outcome is Outcome.EDIT_MENU:
        return "✏️ What would you like to change?", keyboards.edit_transfer_keyboard()

    if outcome is Outcome.ABORTED:
        return (
            f"❌ {result.error_message}\n\nPlease choose how you want to send:",
            keyboards.send_options_keyboard(),
        )

    if outcome is Outcome.FAILED:
        return (
            f"❌ Transfer failed: {result.error_message}\n\n"
            "You can retry, edit the transfer or cancel it.",
            keyboards.confirm_transfer_keyboard(),
        )

    if outcome is Outcome.COMPLETED:
        transfer = result.transfer
        recipient = state.recipient_email if isinstance(state, EmailTransfer) else format_address(
            state.recipient or ""
        )
        if transfer is None:
            return (
                "✅ Transfer submitted.\n\n"
                f"Amount: {format_amount(state.amount, state.currency)} {state.currency}\n"
                f"To: {recipient}\n\n"
                "The receipt could not be read. Check /history before sending again.",
                None,
            )
        return (
            "✅ Transfer completed successfully!\n\n"
            f"ID: {transfer.id}\n"
            f"Amount: {format_amount(state.amount, state.currency)} {state.currency}\n"
            f"To: {recipient}\n"
            f"Status: {transfer.status}",
            None,
        )

    return "Transfer cancelled.", None
