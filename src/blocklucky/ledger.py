from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, replace
from typing import Dict, Set

import base58

from .errors import InsufficientFundsError, InvalidAddressError, LedgerError
from .project_constants import ZERO_ADDRESS

log = logging.getLogger(__name__)

ADDRESS_LENGTH = 32


def derive_address(label: str) -> str:
    """Deterministic account identity for demos and tests."""
    return base58.b58encode(hashlib.sha256(label.encode("utf-8")).digest()).decode("ascii")


def validate_address(address: str) -> str:
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid address {address!r}: {e}")
    if len(raw) != ADDRESS_LENGTH:
        raise InvalidAddressError(
            f"Invalid address {address!r}: expected {ADDRESS_LENGTH} bytes, got {len(raw)}"
        )
    return address


@dataclass(frozen=True)
class BlockContext:
    slot: int
    timestamp: int
    blockhash: str

    def advance(self, seconds: int = 1) -> "BlockContext":
        digest = hashlib.sha256(f"{self.blockhash}:{self.slot + 1}".encode("utf-8")).digest()
        return BlockContext(
            slot=self.slot + 1,
            timestamp=self.timestamp + seconds,
            blockhash=base58.b58encode(digest).decode("ascii"),
        )


GENESIS_BLOCK = BlockContext(slot=0, timestamp=1_700_000_000, blockhash=ZERO_ADDRESS)


@dataclass(frozen=True)
class LedgerSnapshot:
    balances: Dict[str, int]
    rejecting: frozenset
    block: BlockContext


class Ledger:
    """In-memory account balances in base units, plus the current block."""

    def __init__(self, block: BlockContext = GENESIS_BLOCK) -> None:
        self.balances: Dict[str, int] = {}
        self.rejecting: Set[str] = set()
        self.block = block

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def fund(self, address: str, amount: int) -> int:
        validate_address(address)
        if amount <= 0:
            raise LedgerError("Funding amount must be positive.")
        self.balances[address] = self.balance_of(address) + amount
        log.debug("Funded %s with %d", address, amount)
        return self.balances[address]

    def transfer(self, source: str, destination: str, amount: int) -> None:
        if amount < 0:
            raise LedgerError("Transfer amount cannot be negative.")
        validate_address(destination)
        if destination in self.rejecting:
            raise LedgerError(f"Account {destination} rejects incoming payments.")
        available = self.balance_of(source)
        if available < amount:
            raise InsufficientFundsError(
                f"Account {source} holds {available}, needs {amount}."
            )
        if amount == 0:
            return
        self.balances[source] = available - amount
        self.balances[destination] = self.balance_of(destination) + amount

    def reject_payments(self, address: str, rejecting: bool = True) -> None:
        if rejecting:
            self.rejecting.add(address)
        else:
            self.rejecting.discard(address)

    def next_block(self) -> BlockContext:
        self.block = self.block.advance()
        return self.block

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(dict(self.balances), frozenset(self.rejecting), replace(self.block))

    def restore(self, snap: LedgerSnapshot) -> None:
        self.balances = dict(snap.balances)
        self.rejecting = set(snap.rejecting)
        self.block = snap.block
