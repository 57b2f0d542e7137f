"""
Winner-index sources for the draw.

The reference contract hashes block metadata together with its own state.
That entropy is visible to (and partly chosen by) whoever produces the block,
so it is kept only as `BlockEntropySource` for reproducible demos. Tests
inject `SeededRandomness`; production wiring should use `SecureRandomness` or
an externally committed seed (for example a finalized blockhash fetched via RPC).
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

from .ledger import BlockContext


@dataclass(frozen=True)
class DrawContext:
    block: BlockContext
    participants: Tuple[str, ...]
    pot: int


@dataclass(frozen=True)
class DrawResult:
    seed: str
    seed_hash_hex: str
    seed_int: int
    index: int


class RandomnessSource(Protocol):
    def draw_index(self, context: DrawContext, participant_count: int) -> DrawResult:
        ...


def index_from_seed(seed: str, participant_count: int) -> DrawResult:
    if participant_count <= 0:
        raise ValueError("Cannot draw from an empty participant list.")
    seed_hash_hex = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    seed_int = int(seed_hash_hex, 16)
    return DrawResult(seed, seed_hash_hex, seed_int, seed_int % participant_count)


def block_seed(block: BlockContext, participants: Sequence[str]) -> str:
    return "|".join([block.blockhash, str(block.timestamp), str(block.slot), *participants])


class BlockEntropySource:
    """Seed = block metadata + participant list. Manipulable; demo use only."""

    def __init__(self, external_blockhash: Optional[str] = None) -> None:
        # A blockhash fetched from a real chain replaces the simulated one.
        self.external_blockhash = external_blockhash

    def draw_index(self, context: DrawContext, participant_count: int) -> DrawResult:
        block = context.block
        if self.external_blockhash:
            block = BlockContext(block.slot, block.timestamp, self.external_blockhash)
        return index_from_seed(block_seed(block, context.participants), participant_count)


class SeededRandomness:
    """Fixed seed; every draw from the same participant list is reproducible."""

    def __init__(self, seed: str) -> None:
        self.seed = seed

    def draw_index(self, context: DrawContext, participant_count: int) -> DrawResult:
        return index_from_seed(f"{self.seed}|{len(context.participants)}", participant_count)


class SecureRandomness:
    def draw_index(self, context: DrawContext, participant_count: int) -> DrawResult:
        return index_from_seed(secrets.token_hex(32), participant_count)


def build_source(kind: str, seed: Optional[str] = None) -> RandomnessSource:
    if kind == "block":
        return BlockEntropySource(external_blockhash=seed)
    if kind == "seeded":
        if not seed:
            raise RuntimeError("Seeded randomness needs a seed.")
        return SeededRandomness(seed)
    if kind == "secure":
        return SecureRandomness()
    raise RuntimeError(f"Unknown randomness source {kind!r} (expected block, seeded or secure).")
