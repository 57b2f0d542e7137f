from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

from .pricing import to_coins
from .randomness import DrawResult


@dataclass(frozen=True)
class DrawRecord:
    slot: int
    timestamp: int
    seed: str
    seed_hash_hex: str
    participants: Tuple[str, ...]
    index: int
    winner: str
    prize: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "timestamp": self.timestamp,
            "seed": self.seed,
            "seed_hash_hex": self.seed_hash_hex,
            "participants": list(self.participants),
            "index": self.index,
            "winner": self.winner,
            "prize": self.prize,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "DrawRecord":
        return DrawRecord(
            slot=int(data["slot"]),
            timestamp=int(data["timestamp"]),
            seed=data["seed"],
            seed_hash_hex=data["seed_hash_hex"],
            participants=tuple(data["participants"]),
            index=int(data["index"]),
            winner=data["winner"],
            prize=int(data["prize"]),
        )


def select_winner(participants: Sequence[str], result: DrawResult) -> str:
    if result.index < 0 or result.index >= len(participants):
        raise RuntimeError("Winner index out of range (unexpected).")
    return participants[result.index]


def build_audit(record: DrawRecord, generated_at: str) -> Dict[str, Any]:
    # Participants are kept in purchase order so anyone can re-run the draw.
    return {
        "metadata": {
            "tool": "blocklucky",
            "version": "1.0.0",
            "generated_at_utc": generated_at,
            "slot": record.slot,
            "block_timestamp": record.timestamp,
            "seed": record.seed,
            "seed_hash_hex": record.seed_hash_hex,
            "participant_count": len(record.participants),
            "winning_index": record.index,
        },
        "winner": {
            "address": record.winner,
            "prize": record.prize,
            "prize_coins": str(to_coins(record.prize)),
        },
        "all_participants": list(record.participants),
    }
