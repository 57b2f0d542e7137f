"""
The BlockLucky lottery state machine.

States are Active (entries accepted) and Completed (winner paid). The draw
fires inside the purchase call that brings the participant count up to
`min_participants`; only the owner can start a new round with `reset_lottery`.

Every entry point runs as one unit of work: the attached payment, all state
changes, the payout and the emitted events either commit together or are
rolled back together.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, NamedTuple, Optional

from .draw import DrawRecord, select_winner
from .errors import (
    AuthorizationError,
    InactiveRoundError,
    InvalidAmountError,
    InvalidConfigurationError,
    InvalidQuantityError,
    LedgerError,
    PayoutFailureError,
)
from .events import (
    EmergencyWithdrawal,
    Event,
    EventLog,
    LotteryReset,
    LotteryTriggered,
    TicketPurchased,
    TicketsBought,
    WinnerSelected,
)
from .ledger import Ledger, derive_address, validate_address
from .pricing import PriceQuote, calculate_price, to_coins
from .project_constants import MAX_BATCH_QUANTITY, TICKET_PRICE
from .randomness import DrawContext, RandomnessSource, SecureRandomness
from .state import LotteryRound

log = logging.getLogger(__name__)

CONTRACT_ADDRESS = derive_address("blocklucky:contract")


class LotteryInfo(NamedTuple):
    participant_count: int
    pot: int
    min_participants: int
    active: bool
    completed: bool
    winner: str


class Lottery:
    def __init__(
        self,
        owner: str,
        min_participants: int,
        ledger: Optional[Ledger] = None,
        randomness: Optional[RandomnessSource] = None,
        events: Optional[EventLog] = None,
        address: str = CONTRACT_ADDRESS,
        state: Optional[LotteryRound] = None,
    ) -> None:
        if state is None:
            if min_participants <= 0:
                raise InvalidConfigurationError(
                    "Minimum participant count must be greater than 0."
                )
            state = LotteryRound(owner=validate_address(owner), min_participants=min_participants)
        self.state = state
        self.ledger = ledger if ledger is not None else Ledger()
        self.randomness = randomness if randomness is not None else SecureRandomness()
        self.events = events if events is not None else EventLog()
        self.address = address
        self.draws: List[DrawRecord] = []
        self._pending: List[Event] = []
        self._pending_draws: List[DrawRecord] = []

    # ------------------------------------------------------------------
    # Unit of work

    @contextmanager
    def _transaction(self, entry_point: str, sender: str, value: int = 0) -> Iterator[None]:
        block = self.ledger.next_block()
        ledger_snap = self.ledger.snapshot()
        state_snap = self.state.snapshot()
        self._pending = []
        self._pending_draws = []
        try:
            if value:
                self.ledger.transfer(sender, self.address, value)
            yield
        except Exception as e:
            self.ledger.restore(ledger_snap)
            self.state.restore(state_snap)
            self._pending = []
            self._pending_draws = []
            log.warning("%s by %s reverted at slot %d: %s", entry_point, sender, block.slot, e)
            raise

        pending, self._pending = self._pending, []
        draws, self._pending_draws = self._pending_draws, []
        self.draws.extend(draws)
        self.events.publish(pending)

    def _emit(self, event: Event) -> None:
        self._pending.append(event)

    def _only_owner(self, sender: str) -> None:
        if sender != self.state.owner:
            raise AuthorizationError("Only the owner can call this function.")

    def _require_open(self) -> None:
        if not self.state.active or self.state.completed:
            raise InactiveRoundError("Lottery is not active.")

    # ------------------------------------------------------------------
    # Entry points

    def buy_ticket(self, sender: str, value: int) -> None:
        with self._transaction("buy_ticket", sender, value):
            self._require_open()
            if value != self.state.ticket_price:
                raise InvalidAmountError(
                    f"Incorrect amount. A ticket costs {to_coins(self.state.ticket_price)}."
                )

            self.state.record_tickets(sender, 1)
            self.state.pot += value
            self._emit(
                TicketPurchased(
                    buyer=sender,
                    ticket_price=self.state.ticket_price,
                    quantity=1,
                    new_participant_count=self.participant_count,
                    slot=self.ledger.block.slot,
                )
            )
            log.info("Ticket bought by %s (participants=%d)", sender, self.participant_count)
            self._maybe_draw()

    def buy_tickets(self, sender: str, quantity: int, value: int) -> None:
        with self._transaction("buy_tickets", sender, value):
            if quantity < 1 or quantity > MAX_BATCH_QUANTITY:
                raise InvalidQuantityError(
                    f"Quantity must be between 1 and {MAX_BATCH_QUANTITY}."
                )
            self._require_open()
            quote = self.calculate_price(quantity)
            if value != quote.total_price:
                raise InvalidAmountError(
                    f"Incorrect amount. {quantity} tickets cost {to_coins(quote.total_price)}."
                )

            self.state.record_tickets(sender, quantity)
            self.state.pot += quote.total_price
            self._emit(
                TicketsBought(
                    buyer=sender,
                    quantity=quantity,
                    total_price=quote.total_price,
                    discount=quote.discount_percent,
                    slot=self.ledger.block.slot,
                )
            )
            log.info(
                "%d tickets bought by %s for %d (discount %d%%)",
                quantity,
                sender,
                quote.total_price,
                quote.discount_percent,
            )
            self._maybe_draw()

    def reset_lottery(self, sender: str, new_min_participants: int) -> None:
        with self._transaction("reset_lottery", sender):
            self._only_owner(sender)
            if new_min_participants <= 0:
                raise InvalidConfigurationError(
                    "Minimum participant count must be greater than 0."
                )
            if self.state.pot:
                # Round reset before its draw: the pot goes to the owner.
                log.warning("Resetting with %d still in the pot", self.state.pot)
                self._withdraw_pot()
            self.state.clear(new_min_participants)
            self._emit(
                LotteryReset(new_min_participants=new_min_participants, slot=self.ledger.block.slot)
            )
            log.info("Lottery reset, min participants=%d", new_min_participants)

    def emergency_withdraw(self, sender: str) -> int:
        with self._transaction("emergency_withdraw", sender):
            self._only_owner(sender)
            amount = self._withdraw_pot()
            log.warning("Emergency withdrawal of %d by owner", amount)
        return amount

    def _withdraw_pot(self) -> int:
        amount = self.state.pot
        self.state.pot = 0
        try:
            self.ledger.transfer(self.address, self.state.owner, amount)
        except LedgerError as e:
            raise PayoutFailureError(f"Withdrawal to owner {self.state.owner} failed: {e}") from e
        self._emit(
            EmergencyWithdrawal(owner=self.state.owner, amount=amount, slot=self.ledger.block.slot)
        )
        return amount

    # ------------------------------------------------------------------
    # Draw

    def _maybe_draw(self) -> None:
        if self.state.completed or self.participant_count < self.state.min_participants:
            return
        self._draw()

    def _draw(self) -> None:
        participants = tuple(self.state.participants)
        block = self.ledger.block
        result = self.randomness.draw_index(
            DrawContext(block=block, participants=participants, pot=self.state.pot),
            len(participants),
        )
        winner = select_winner(participants, result)

        payout = self.state.pot
        self._emit(
            LotteryTriggered(total_participants=len(participants), total_pot=payout, slot=block.slot)
        )

        self.state.completed = True
        self.state.active = False
        self.state.winner = winner
        self.state.pot = 0

        try:
            self.ledger.transfer(self.address, winner, payout)
        except LedgerError as e:
            raise PayoutFailureError(f"Payout to {winner} failed: {e}") from e

        self._emit(WinnerSelected(winner=winner, prize=payout, slot=block.slot))
        self._pending_draws.append(
            DrawRecord(
                slot=block.slot,
                timestamp=block.timestamp,
                seed=result.seed,
                seed_hash_hex=result.seed_hash_hex,
                participants=participants,
                index=result.index,
                winner=winner,
                prize=payout,
            )
        )
        log.info(
            "Winner %s selected among %d participants, prize %d",
            winner,
            len(participants),
            payout,
        )

    # ------------------------------------------------------------------
    # Views

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def ticket_price(self) -> int:
        return self.state.ticket_price

    @property
    def min_participants(self) -> int:
        return self.state.min_participants

    @property
    def participant_count(self) -> int:
        return len(self.state.participants)

    @property
    def pot(self) -> int:
        return self.state.pot

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def completed(self) -> bool:
        return self.state.completed

    @property
    def winner(self) -> str:
        return self.state.winner

    def has_participated(self, address: str) -> bool:
        return address in self.state.has_participated

    def tickets_by_address(self, address: str) -> int:
        return self.state.tickets_by_address.get(address, 0)

    def get_all_participants(self) -> List[str]:
        return list(self.state.participants)

    def get_participant_count(self) -> int:
        return self.participant_count

    def get_pot(self) -> int:
        return self.pot

    def get_lottery_info(self) -> LotteryInfo:
        return LotteryInfo(
            participant_count=self.participant_count,
            pot=self.state.pot,
            min_participants=self.state.min_participants,
            active=self.state.active,
            completed=self.state.completed,
            winner=self.state.winner,
        )

    def calculate_price(self, quantity: int) -> PriceQuote:
        return calculate_price(quantity, self.state.ticket_price)


def deploy(
    owner: str,
    min_participants: int,
    ledger: Optional[Ledger] = None,
    randomness: Optional[RandomnessSource] = None,
) -> Lottery:
    lottery = Lottery(owner, min_participants, ledger=ledger, randomness=randomness)
    log.info(
        "Deployed lottery at %s (owner=%s, min participants=%d, ticket price=%d)",
        lottery.address,
        owner,
        min_participants,
        TICKET_PRICE,
    )
    return lottery
