import pytest

from blocklucky.contract import Lottery, LotteryInfo
from blocklucky.errors import (
    AuthorizationError,
    InactiveRoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidConfigurationError,
    InvalidQuantityError,
    PayoutFailureError,
)
from blocklucky.events import (
    EmergencyWithdrawal,
    LotteryReset,
    LotteryTriggered,
    TicketPurchased,
    TicketsBought,
    WinnerSelected,
)
from blocklucky.ledger import derive_address
from blocklucky.pricing import calculate_price
from blocklucky.project_constants import TICKET_PRICE, ZERO_ADDRESS

from conftest import MIN_PARTICIPANTS, ONE_COIN


def fill_round(lottery, players, count=MIN_PARTICIPANTS):
    for player in players[:count]:
        lottery.buy_ticket(player, TICKET_PRICE)


class TestDeployment:
    def test_initial_state(self, lottery, owner):
        assert lottery.owner == owner
        assert lottery.ticket_price == TICKET_PRICE
        assert lottery.min_participants == MIN_PARTICIPANTS
        assert lottery.participant_count == 0
        assert lottery.pot == 0
        assert lottery.active is True
        assert lottery.completed is False
        assert lottery.winner == ZERO_ADDRESS

    def test_zero_min_participants_rejected(self, owner):
        with pytest.raises(InvalidConfigurationError):
            Lottery(owner, 0)


class TestBuyTicket:
    def test_single_purchase(self, lottery, players, recorded):
        alice = players[0]
        lottery.buy_ticket(alice, TICKET_PRICE)

        assert lottery.participant_count == 1
        assert lottery.pot == TICKET_PRICE
        assert lottery.has_participated(alice)
        assert lottery.tickets_by_address(alice) == 1
        assert lottery.ledger.balance_of(alice) == ONE_COIN - TICKET_PRICE
        assert lottery.ledger.balance_of(lottery.address) == TICKET_PRICE
        assert recorded == [
            TicketPurchased(
                buyer=alice,
                ticket_price=TICKET_PRICE,
                quantity=1,
                new_participant_count=1,
                slot=lottery.ledger.block.slot,
            )
        ]

    @pytest.mark.parametrize("value", [TICKET_PRICE // 2, TICKET_PRICE * 2, 0])
    def test_wrong_amount_reverts(self, lottery, players, recorded, value):
        alice = players[0]
        with pytest.raises(InvalidAmountError):
            lottery.buy_ticket(alice, value)

        assert lottery.participant_count == 0
        assert lottery.pot == 0
        assert lottery.ledger.balance_of(alice) == ONE_COIN
        assert recorded == []

    def test_repeat_buyer_counted_once(self, lottery, players):
        alice = players[0]
        lottery.buy_ticket(alice, TICKET_PRICE)
        lottery.buy_ticket(alice, TICKET_PRICE)

        assert lottery.participant_count == 1
        assert lottery.tickets_by_address(alice) == 2
        assert lottery.pot == 2 * TICKET_PRICE
        assert lottery.get_all_participants() == [alice]

    def test_unfunded_sender_rejected(self, lottery):
        stranger = derive_address("stranger")
        with pytest.raises(InsufficientFundsError):
            lottery.buy_ticket(stranger, TICKET_PRICE)
        assert lottery.pot == 0

    def test_no_purchase_after_completion(self, lottery, players):
        fill_round(lottery, players)
        assert lottery.completed

        with pytest.raises(InactiveRoundError):
            lottery.buy_ticket(players[3], TICKET_PRICE)
        with pytest.raises(InactiveRoundError):
            lottery.buy_tickets(players[3], 2, calculate_price(2).total_price)
        assert lottery.ledger.balance_of(players[3]) == ONE_COIN


class TestBuyTickets:
    @pytest.mark.parametrize("quantity", [1, 14, 15, 20, 25])
    def test_exact_discounted_payment(self, lottery, players, recorded, quantity):
        alice = players[0]
        quote = lottery.calculate_price(quantity)
        lottery.buy_tickets(alice, quantity, quote.total_price)

        assert lottery.tickets_by_address(alice) == quantity
        assert lottery.pot == quote.total_price
        assert lottery.participant_count == 1
        assert recorded == [
            TicketsBought(
                buyer=alice,
                quantity=quantity,
                total_price=quote.total_price,
                discount=quote.discount_percent,
                slot=lottery.ledger.block.slot,
            )
        ]

    def test_undiscounted_payment_rejected(self, lottery, players):
        with pytest.raises(InvalidAmountError):
            lottery.buy_tickets(players[0], 20, 20 * TICKET_PRICE)
        assert lottery.pot == 0

    def test_client_side_top_tier_estimate_rejected(self, lottery, players):
        # Half price for 25 tickets is not what the contract charges.
        with pytest.raises(InvalidAmountError):
            lottery.buy_tickets(players[0], 25, 25 * TICKET_PRICE // 2)

    @pytest.mark.parametrize("quantity", [0, 26, -3])
    def test_quantity_out_of_range(self, lottery, players, quantity):
        with pytest.raises(InvalidQuantityError):
            lottery.buy_tickets(players[0], quantity, TICKET_PRICE)
        assert lottery.ledger.balance_of(players[0]) == ONE_COIN

    def test_batch_triggers_draw_once(self, lottery, players, recorded):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)
        quote = lottery.calculate_price(15)
        lottery.buy_tickets(players[2], 15, quote.total_price)

        assert lottery.completed
        assert len(lottery.draws) == 1
        assert lottery.draws[0].prize == 2 * TICKET_PRICE + quote.total_price
        assert [e.name for e in recorded[-3:]] == ["TicketsBought", "LotteryTriggered", "WinnerSelected"]


class TestDraw:
    def test_end_to_end_three_players(self, lottery, players, recorded):
        before = {p: lottery.ledger.balance_of(p) for p in players[:3]}
        fill_round(lottery, players)

        assert lottery.participant_count == 3
        assert lottery.pot == 0
        assert lottery.completed is True
        assert lottery.active is False
        winner = lottery.winner
        assert winner in players[:3]
        assert lottery.ledger.balance_of(winner) == before[winner] - TICKET_PRICE + 3 * TICKET_PRICE
        assert lottery.ledger.balance_of(lottery.address) == 0

    def test_events_in_order(self, lottery, players, recorded):
        fill_round(lottery, players)

        assert [e.name for e in recorded] == [
            "TicketPurchased",
            "TicketPurchased",
            "TicketPurchased",
            "LotteryTriggered",
            "WinnerSelected",
        ]
        triggered, selected = recorded[3], recorded[4]
        assert triggered == LotteryTriggered(
            total_participants=3, total_pot=3 * TICKET_PRICE, slot=triggered.slot
        )
        assert selected == WinnerSelected(winner=lottery.winner, prize=3 * TICKET_PRICE, slot=selected.slot)

    def test_no_draw_below_threshold(self, lottery, players):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)

        assert lottery.active and not lottery.completed
        assert lottery.pot == 3 * TICKET_PRICE
        assert lottery.winner == ZERO_ADDRESS

    def test_pot_matches_tickets_before_draw(self, lottery, players):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)
        total = sum(lottery.tickets_by_address(p) for p in lottery.get_all_participants())
        assert lottery.pot == TICKET_PRICE * total

    def test_draw_record_matches_state(self, lottery, players):
        fill_round(lottery, players)
        record = lottery.draws[0]

        assert record.participants == tuple(players[:3])
        assert record.participants[record.index] == lottery.winner
        assert record.prize == 3 * TICKET_PRICE

    def test_failed_payout_reverts_triggering_purchase(self, lottery, players, recorded):
        for player in players[:3]:
            lottery.ledger.reject_payments(player)
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)
        recorded.clear()

        with pytest.raises(PayoutFailureError):
            lottery.buy_ticket(players[2], TICKET_PRICE)

        assert lottery.participant_count == 2
        assert not lottery.has_participated(players[2])
        assert lottery.pot == 2 * TICKET_PRICE
        assert lottery.active and not lottery.completed
        assert lottery.winner == ZERO_ADDRESS
        assert lottery.ledger.balance_of(players[2]) == ONE_COIN
        assert lottery.ledger.balance_of(lottery.address) == 2 * TICKET_PRICE
        assert lottery.draws == []
        assert recorded == []

    def test_retry_after_payout_failure(self, lottery, players):
        for player in players[:3]:
            lottery.ledger.reject_payments(player)
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)
        with pytest.raises(PayoutFailureError):
            lottery.buy_ticket(players[2], TICKET_PRICE)

        for player in players[:3]:
            lottery.ledger.reject_payments(player, rejecting=False)
        lottery.buy_ticket(players[2], TICKET_PRICE)
        assert lottery.completed

    def test_failed_payout_reverts_triggering_batch(self, lottery, players, recorded):
        for player in players[:3]:
            lottery.ledger.reject_payments(player)
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)
        recorded.clear()
        quote = lottery.calculate_price(20)

        with pytest.raises(PayoutFailureError):
            lottery.buy_tickets(players[2], 20, quote.total_price)

        assert lottery.pot == 2 * TICKET_PRICE
        assert lottery.tickets_by_address(players[2]) == 0
        assert not lottery.has_participated(players[2])
        assert lottery.participant_count == 2
        assert lottery.active and not lottery.completed
        assert lottery.ledger.balance_of(players[2]) == ONE_COIN
        assert lottery.ledger.balance_of(lottery.address) == 2 * TICKET_PRICE
        assert lottery.draws == []
        assert recorded == []
        assert [e.name for e in lottery.events.entries] == ["TicketPurchased", "TicketPurchased"]

    def test_failing_subscriber_does_not_drop_draw_events(self, lottery, players):
        def broken(event):
            raise RuntimeError("subscriber down")

        lottery.events.subscribe(broken)
        fill_round(lottery, players)

        assert lottery.completed
        assert [e.name for e in lottery.events.entries] == [
            "TicketPurchased",
            "TicketPurchased",
            "TicketPurchased",
            "LotteryTriggered",
            "WinnerSelected",
        ]
        assert len(lottery.draws) == 1


class TestReset:
    def test_owner_reset_after_draw(self, lottery, players, owner, recorded):
        fill_round(lottery, players)
        lottery.reset_lottery(owner, 5)

        assert lottery.min_participants == 5
        assert lottery.participant_count == 0
        assert lottery.pot == 0
        assert lottery.winner == ZERO_ADDRESS
        assert lottery.active is True
        assert lottery.completed is False
        assert not lottery.has_participated(players[0])
        assert lottery.tickets_by_address(players[0]) == 0
        assert recorded[-1] == LotteryReset(new_min_participants=5, slot=recorded[-1].slot)

        lottery.buy_ticket(players[0], TICKET_PRICE)
        assert lottery.participant_count == 1

    def test_non_owner_reset_rejected(self, lottery, players):
        with pytest.raises(AuthorizationError):
            lottery.reset_lottery(players[0], 5)
        assert lottery.min_participants == MIN_PARTICIPANTS

    def test_zero_threshold_rejected(self, lottery, owner):
        with pytest.raises(InvalidConfigurationError):
            lottery.reset_lottery(owner, 0)

    def test_reset_with_open_pot_returns_funds_to_owner(self, lottery, players, owner, recorded):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.reset_lottery(owner, 2)

        assert lottery.pot == 0
        assert lottery.ledger.balance_of(owner) == ONE_COIN + TICKET_PRICE
        assert lottery.ledger.balance_of(lottery.address) == 0
        assert [e.name for e in recorded[-2:]] == ["EmergencyWithdrawal", "LotteryReset"]

    def test_reset_fails_cleanly_when_owner_rejects_pot(self, lottery, players, owner, recorded):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.ledger.reject_payments(owner)
        recorded.clear()

        with pytest.raises(PayoutFailureError):
            lottery.reset_lottery(owner, 2)

        assert lottery.min_participants == MIN_PARTICIPANTS
        assert lottery.participant_count == 1
        assert lottery.pot == TICKET_PRICE
        assert lottery.ledger.balance_of(lottery.address) == TICKET_PRICE
        assert recorded == []


class TestEmergencyWithdraw:
    def test_owner_withdraws_pot(self, lottery, players, owner, recorded):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)

        amount = lottery.emergency_withdraw(owner)

        assert amount == 2 * TICKET_PRICE
        assert lottery.pot == 0
        assert lottery.ledger.balance_of(owner) == ONE_COIN + 2 * TICKET_PRICE
        assert lottery.active and not lottery.completed
        assert lottery.participant_count == 2
        assert recorded[-1] == EmergencyWithdrawal(owner=owner, amount=amount, slot=recorded[-1].slot)

    def test_non_owner_rejected(self, lottery, players):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        with pytest.raises(AuthorizationError):
            lottery.emergency_withdraw(players[0])
        assert lottery.pot == TICKET_PRICE

    def test_after_completion_withdraws_nothing(self, lottery, players, owner):
        fill_round(lottery, players)
        assert lottery.emergency_withdraw(owner) == 0
        assert lottery.completed

    def test_owner_rejecting_payments(self, lottery, players, owner):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.ledger.reject_payments(owner)
        with pytest.raises(PayoutFailureError):
            lottery.emergency_withdraw(owner)
        assert lottery.pot == TICKET_PRICE


class TestViews:
    def test_lottery_info(self, lottery, players):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.buy_ticket(players[1], TICKET_PRICE)

        info = lottery.get_lottery_info()
        assert info == LotteryInfo(2, 2 * TICKET_PRICE, MIN_PARTICIPANTS, True, False, ZERO_ADDRESS)
        assert info[0] == 2
        assert info.winner == ZERO_ADDRESS

    def test_participant_list_and_aliases(self, lottery, players):
        lottery.buy_ticket(players[1], TICKET_PRICE)
        lottery.buy_ticket(players[0], TICKET_PRICE)

        assert lottery.get_all_participants() == [players[1], players[0]]
        assert lottery.get_participant_count() == 2
        assert lottery.get_pot() == 2 * TICKET_PRICE

    def test_participant_list_is_a_copy(self, lottery, players):
        lottery.buy_ticket(players[0], TICKET_PRICE)
        lottery.get_all_participants().append(players[1])
        assert lottery.participant_count == 1

    def test_views_for_unknown_address(self, lottery):
        stranger = derive_address("stranger")
        assert lottery.has_participated(stranger) is False
        assert lottery.tickets_by_address(stranger) == 0
