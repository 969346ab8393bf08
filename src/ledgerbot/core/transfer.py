"""Multi-step transfer conversation.

A user holds at most one TransferState. Each transfer type walks its own
ordered step sequence; the current step is always the first one whose field
is still empty, so an edit that clears a field sends the conversation back
to exactly that step. Inputs addressed to any other step are ignored, which
keeps two racing messages from the same user from both applying.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional, Union

from ledgerbot.currencies import DEFAULT_CURRENCY, get_currency
from ledgerbot.errors import BotError, ResponseFormatError, ValidationError
from ledgerbot.ledger.client import LedgerClient
from ledgerbot.ledger.models import FeeQuote, Transfer
from ledgerbot.validation import (
    validate_address_shape,
    validate_amount,
    validate_email,
    validate_wallet_address,
)

logger = logging.getLogger(__name__)

PURPOSE_CODE = "self"


class TransferType(str, Enum):
    EMAIL = "EMAIL"
    WITHDRAW = "WITHDRAW"


class TransferStep(str, Enum):
    AWAITING_EMAIL = "AWAITING_EMAIL"
    AWAITING_ADDRESS = "AWAITING_ADDRESS"
    AWAITING_AMOUNT = "AWAITING_AMOUNT"
    AWAITING_CURRENCY = "AWAITING_CURRENCY"
    AWAITING_NETWORK = "AWAITING_NETWORK"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"


class EditTarget(str, Enum):
    CURRENCY = "currency"
    AMOUNT = "amount"
    RECIPIENT = "recipient"


# Attribute each step fills in.
STEP_FIELDS: dict[TransferStep, str] = {
    TransferStep.AWAITING_EMAIL: "recipient_email",
    TransferStep.AWAITING_ADDRESS: "recipient_address",
    TransferStep.AWAITING_AMOUNT: "amount",
    TransferStep.AWAITING_CURRENCY: "currency",
    TransferStep.AWAITING_NETWORK: "network",
    TransferStep.AWAITING_CONFIRMATION: "fee",
}


@dataclass
class TransferState(ABC):
    """Fields shared by every transfer conversation."""

    type: ClassVar[TransferType]
    steps: ClassVar[tuple[TransferStep, ...]]

    step: TransferStep
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    fee: Optional[FeeQuote] = None
    in_flight: bool = False

    @property
    @abstractmethod
    def recipient(self) -> Optional[str]:
        """Email or wallet address the transfer goes to."""

    @property
    def network(self) -> Optional[str]:
        return None

    @property
    def amount_currency(self) -> str:
        """Currency the amount is validated against."""
        return self.currency or DEFAULT_CURRENCY

    def is_filled(self, step: TransferStep) -> bool:
        return getattr(self, STEP_FIELDS[step]) is not None

    def next_step(self) -> TransferStep:
        for step in self.steps:
            if not self.is_filled(step):
                return step
        return TransferStep.AWAITING_CONFIRMATION

    @property
    def ready_to_confirm(self) -> bool:
        return self.step is TransferStep.AWAITING_CONFIRMATION and self.fee is not None


@dataclass
class EmailTransfer(TransferState):
    """Send to another account by email address."""

    type: ClassVar[TransferType] = TransferType.EMAIL
    steps: ClassVar[tuple[TransferStep, ...]] = (
        TransferStep.AWAITING_EMAIL,
        TransferStep.AWAITING_AMOUNT,
        TransferStep.AWAITING_CURRENCY,
        TransferStep.AWAITING_CONFIRMATION,
    )

    step: TransferStep = TransferStep.AWAITING_EMAIL
    recipient_email: Optional[str] = None
    # The amount step precedes the currency step, so it validates against
    # the user's preferred currency until one is chosen.
    preferred_currency: str = DEFAULT_CURRENCY

    @property
    def recipient(self) -> Optional[str]:
        return self.recipient_email

    @property
    def amount_currency(self) -> str:
        return self.currency or self.preferred_currency


@dataclass
class WalletWithdrawal(TransferState):
    """Withdraw to an external wallet address on a chosen network."""

    type: ClassVar[TransferType] = TransferType.WITHDRAW
    steps: ClassVar[tuple[TransferStep, ...]] = (
        TransferStep.AWAITING_ADDRESS,
        TransferStep.AWAITING_CURRENCY,
        TransferStep.AWAITING_NETWORK,
        TransferStep.AWAITING_AMOUNT,
        TransferStep.AWAITING_CONFIRMATION,
    )

    step: TransferStep = TransferStep.AWAITING_ADDRESS
    recipient_address: Optional[str] = None
    selected_network: Optional[str] = None

    @property
    def recipient(self) -> Optional[str]:
        return self.recipient_address

    @property
    def network(self) -> Optional[str]:
        return self.selected_network


class Outcome(str, Enum):
    PROMPT = "prompt"  # waiting for the input of ``state.step``
    INVALID = "invalid"  # input rejected, same step again
    IGNORED = "ignored"  # no active transfer or input for another step
    EDIT_MENU = "edit_menu"
    ABORTED = "aborted"  # state discarded after a backend failure
    FAILED = "failed"  # execution rejected, state kept for retry
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StepResult:
    """What a transition did, for the chat layer to render."""

    outcome: Outcome
    state: Optional[TransferState] = None
    error: Optional[BotError] = None
    transfer: Optional[Transfer] = None

    @property
    def step(self) -> Optional[TransferStep]:
        return self.state.step if self.state else None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None


class TransferStateMachine:
    """Owns the per-user transfer conversations."""

    def __init__(self, ledger: LedgerClient):
        self._ledger = ledger
        self._states: dict[int, TransferState] = {}

    def get(self, user_id: int) -> Optional[TransferState]:
        return self._states.get(user_id)

    def has_active(self, user_id: int) -> bool:
        return user_id in self._states

    def discard(self, user_id: int) -> None:
        self._states.pop(user_id, None)

    # ======================
    # Entry points
    # ======================

    def start_email_transfer(
        self, user_id: int, preferred_currency: str = DEFAULT_CURRENCY
    ) -> StepResult:
        currency = get_currency(preferred_currency)
        state = EmailTransfer(
            preferred_currency=currency.code if currency else DEFAULT_CURRENCY
        )
        self._states[user_id] = state
        logger.debug(f"Email transfer started: user={user_id}")
        return StepResult(Outcome.PROMPT, state)

    def start_wallet_withdraw(self, user_id: int) -> StepResult:
        state = WalletWithdrawal()
        self._states[user_id] = state
        logger.debug(f"Wallet withdrawal started: user={user_id}")
        return StepResult(Outcome.PROMPT, state)

    # ======================
    # Step handlers
    # ======================

    def _active(self, user_id: int, step: TransferStep) -> Optional[TransferState]:
        state = self._states.get(user_id)
        if state is None or state.in_flight or state.step is not step:
            return None
        return state

    async def submit_email(self, user_id: int, text: str, token: str) -> StepResult:
        state = self._active(user_id, TransferStep.AWAITING_EMAIL)
        if state is None:
            return StepResult(Outcome.IGNORED, self.get(user_id))
        try:
            state.recipient_email = validate_email(text)
        except ValidationError as e:
            return StepResult(Outcome.INVALID, state, error=e)
        return await self._advance(user_id, state, token)

    async def submit_address(self, user_id: int, text: str, token: str) -> StepResult:
        state = self._active(user_id, TransferStep.AWAITING_ADDRESS)
        if state is None:
            return StepResult(Outcome.IGNORED, self.get(user_id))
        try:
            address = validate_address_shape(text)
            # Only checkable once the network is known, e.g. after an edit.
            if state.network:
                validate_wallet_address(address, state.network)
        except ValidationError as e:
            return StepResult(Outcome.INVALID, state, error=e)
        state.recipient_address = address
        return await self._advance(user_id, state, token)

    async def submit_amount(self, user_id: int, text: str, token: str) -> StepResult:
        state = self._active(user_id, TransferStep.AWAITING_AMOUNT)
        if state is None:
            return StepResult(Outcome.IGNORED, self.get(user_id))
        try:
            state.amount = validate_amount(text, state.amount_currency)
        except ValidationError as e:
            return StepResult(Outcome.INVALID, state, error=e)
        return await self._advance(user_id, state, token)

    async def submit_currency(self, user_id: int, code: str, token: str) -> StepResult:
        state = self._active(user_id, TransferStep.AWAITING_CURRENCY)
        if state is None:
            return StepResult(Outcome.IGNORED, self.get(user_id))

        currency = get_currency(code.strip())
        try:
            if currency is None:
                raise ValidationError(f"Unsupported currency: {code.strip()}")
            if state.type is TransferType.WITHDRAW and not currency.withdrawable:
                raise ValidationError(f"{currency.code} cannot be withdrawn to a wallet.")
            if state.amount is not None:
                validate_amount(f"{state.amount:f}", currency.code)
        except ValidationError as e:
            return StepResult(Outcome.INVALID, state, error=e)

        state.currency = currency.code
        if state.network and state.network not in currency.networks:
            state.selected_network = None
        return await self._advance(user_id, state, token)

    async def submit_network(self, user_id: int, network: str, token: str) -> StepResult:
        state = self._active(user_id, TransferStep.AWAITING_NETWORK)
        if state is None:
            return StepResult(Outcome.IGNORED, self.get(user_id))

        network = network.strip().lower()
        currency = get_currency(state.currency)
        try:
            if currency is None or network not in currency.networks:
                raise ValidationError(f"Unsupported network for {state.currency}: {network}")
            validate_wallet_address(state.recipient_address or "", network)
        except ValidationError as e:
            return StepResult(Outcome.INVALID, state, error=e)

        state.selected_network = network
        return await self._advance(user_id, state, token)

    async def submit_text(self, user_id: int, text: str, token: str) -> StepResult:
        """Route free text to the handler of the current step."""
        state = self._states.get(user_id)
        if state is None:
            return StepResult(Outcome.IGNORED)

        handlers = {
            TransferStep.AWAITING_EMAIL: self.submit_email,
            TransferStep.AWAITING_ADDRESS: self.submit_address,
            TransferStep.AWAITING_AMOUNT: self.submit_amount,
            TransferStep.AWAITING_CURRENCY: self.submit_currency,
            TransferStep.AWAITING_NETWORK: self.submit_network,
        }
        handler = handlers.get(state.step)
        if handler is None:
            return StepResult(Outcome.IGNORED, state)
        return await handler(user_id, text, token)

    async def _advance(self, user_id: int, state: TransferState, token: str) -> StepResult:
        state.fee = None
        state.step = state.next_step()
        if state.step is TransferStep.AWAITING_CONFIRMATION:
            return await self._quote_fee(user_id, state, token)
        return StepResult(Outcome.PROMPT, state)

    async def _quote_fee(self, user_id: int, state: TransferState, token: str) -> StepResult:
        state.in_flight = True
        try:
            quote = await self._ledger.calculate_fee(
                token,
                amount=f"{state.amount:f}",
                currency=state.currency,
                transfer_type=state.type.value,
                network=state.network,
            )
        except BotError as e:
            logger.error(f"Fee calculation failed: user={user_id}: {e}")
            if self._states.get(user_id) is state:
                del self._states[user_id]
            return StepResult(Outcome.ABORTED, state, error=e)
        finally:
            state.in_flight = False

        if self._states.get(user_id) is not state:
            # Cancelled or restarted while the quote was in flight.
            return StepResult(Outcome.IGNORED, self.get(user_id))

        state.fee = quote
        return StepResult(Outcome.PROMPT, state)

    # ======================
    # Confirmation, edit, cancel
    # ======================

    async def confirm(self, user_id: int, token: str) -> StepResult:
        """Execute the quoted transfer.

        On success the state is cleared; on failure it is kept so the user
        can retry or edit. A transfer the ledger accepted is never kept for
        retry, even when its receipt cannot be read.
        """
        state = self._states.get(user_id)
        if state is None or state.in_flight or not state.ready_to_confirm:
            return StepResult(Outcome.IGNORED, state)

        fee = state.fee
        receipt_error: Optional[ResponseFormatError] = None
        transfer: Optional[Transfer] = None
        state.in_flight = True
        try:
            await self._check_recipient(state, token)
            try:
                transfer = await self._submit(state, fee, token)
            except ResponseFormatError as e:
                logger.error(
                    f"Transfer accepted but receipt unreadable: user={user_id} "
                    f"type={state.type.value}: {e}"
                )
                receipt_error = e
        except BotError as e:
            logger.error(f"Transfer failed: user={user_id} type={state.type.value}: {e}")
            return StepResult(Outcome.FAILED, state, error=e)
        finally:
            state.in_flight = False

        if self._states.get(user_id) is state:
            del self._states[user_id]
        if transfer is not None:
            logger.info(
                f"Transfer executed: user={user_id} type={state.type.value} "
                f"id={transfer.id} status={transfer.status}"
            )
        return StepResult(Outcome.COMPLETED, state, error=receipt_error, transfer=transfer)

    async def _check_recipient(self, state: TransferState, token: str) -> None:
        if isinstance(state, EmailTransfer):
            await self._ledger.validate_recipient(token, recipient_email=state.recipient_email)
            return
        await self._ledger.validate_recipient(
            token, wallet_address=state.recipient_address, network=state.network
        )

    async def _submit(self, state: TransferState, fee: FeeQuote, token: str) -> Transfer:
        amount = f"{state.amount:f}"
        if isinstance(state, EmailTransfer):
            return await self._ledger.send_to_email(
                token,
                email=state.recipient_email,
                amount=amount,
                currency=state.currency,
                fee=fee.fee,
                fee_currency=fee.fee_currency,
                total=fee.total,
                purpose_code=PURPOSE_CODE,
            )

        return await self._ledger.withdraw_to_wallet(
            token,
            wallet_address=state.recipient_address,
            amount=amount,
            currency=state.currency,
            network=state.network,
            fee=fee.fee,
            fee_currency=fee.fee_currency,
            total=fee.total,
            purpose_code=PURPOSE_CODE,
        )

    def edit(
        self, user_id: int, target: Optional[Union[EditTarget, str]] = None
    ) -> StepResult:
        """Show the edit menu, or reopen one field keeping the others."""
        state = self._states.get(user_id)
        if state is None or state.in_flight:
            return StepResult(Outcome.IGNORED, state)
        if target is None:
            return StepResult(Outcome.EDIT_MENU, state)

        target = EditTarget(target)
        if target is EditTarget.AMOUNT:
            state.amount = None
        elif target is EditTarget.CURRENCY:
            state.currency = None
        elif isinstance(state, EmailTransfer):
            state.recipient_email = None
        else:
            state.recipient_address = None

        state.fee = None
        state.step = state.next_step()
        logger.debug(f"Transfer edit: user={user_id} target={target.value} step={state.step.value}")
        return StepResult(Outcome.PROMPT, state)

    def cancel(self, user_id: int) -> StepResult:
        state = self._states.pop(user_id, None)
        if state is not None:
            logger.debug(f"Transfer cancelled: user={user_id} step={state.step.value}")
        return StepResult(Outcome.CANCELLED, state)
