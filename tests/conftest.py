from __future__ import annotations

import pytest

from blocklucky.contract import Lottery
from blocklucky.ledger import Ledger, derive_address
from blocklucky.project_constants import NATIVE_DECIMALS
from blocklucky.randomness import SeededRandomness

ONE_COIN = 10**NATIVE_DECIMALS
MIN_PARTICIPANTS = 3


@pytest.fixture
def owner() -> str:
    return derive_address("owner")


@pytest.fixture
def players() -> list[str]:
    return [derive_address(name) for name in ("alice", "bob", "carol", "dave", "erin")]


@pytest.fixture
def ledger(owner, players) -> Ledger:
    ledger = Ledger()
    for address in [owner, *players]:
        ledger.fund(address, ONE_COIN)
    return ledger


@pytest.fixture
def lottery(owner, ledger) -> Lottery:
    return Lottery(
        owner,
        MIN_PARTICIPANTS,
        ledger=ledger,
        randomness=SeededRandomness("test-seed"),
    )


@pytest.fixture
def recorded(lottery):
    seen = []
    lottery.events.subscribe(seen.append)
    return seen
