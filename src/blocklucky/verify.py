from __future__ import annotations

import json
from typing import Any, Dict

from .randomness import index_from_seed


def verify_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)

    meta = audit["metadata"]
    seed = meta["seed"]
    participants = list(audit["all_participants"])

    if len(participants) != int(meta["participant_count"]):
        raise RuntimeError(
            f"Participant count mismatch: audit={meta['participant_count']} listed={len(participants)}"
        )
    if len(set(participants)) != len(participants):
        raise RuntimeError("Participant list contains duplicates.")

    result = index_from_seed(seed, len(participants))
    if result.seed_hash_hex != meta["seed_hash_hex"]:
        raise RuntimeError(
            f"Seed hash mismatch: audit={meta['seed_hash_hex']} recomputed={result.seed_hash_hex}"
        )
    if result.index != int(meta["winning_index"]):
        raise RuntimeError(
            f"Winning index mismatch: audit={meta['winning_index']} recomputed={result.index}"
        )

    winner = participants[result.index]
    winner_expected = audit["winner"]["address"]
    if winner != winner_expected:
        raise RuntimeError(f"Winner mismatch: audit={winner_expected} recomputed={winner}")

    return {
        "ok": True,
        "seed_hash_hex": result.seed_hash_hex,
        "seed_int": result.seed_int,
        "winner": winner,
        "winning_index": result.index,
        "participant_count": len(participants),
        "prize": int(audit["winner"]["prize"]),
    }
