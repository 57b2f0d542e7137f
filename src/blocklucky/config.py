from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import find_dotenv, load_dotenv

from .project_constants import DEFAULT_STATE_FILE

RANDOMNESS_KINDS = ("block", "seeded", "secure")


@dataclass(frozen=True)
class Settings:
    state_file: str
    min_participants: int
    randomness: str
    randomness_seed: str | None
    rpc_url: str | None

    @staticmethod
    def from_env(
        state_file_override: str | None = None,
        rpc_url_override: str | None = None,
    ) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))

        state_file = state_file_override or os.getenv("BLOCKLUCKY_STATE_FILE", "").strip()

        raw_min = os.getenv("BLOCKLUCKY_MIN_PARTICIPANTS", "3").strip()
        try:
            min_participants = int(raw_min)
        except ValueError:
            raise RuntimeError(f"BLOCKLUCKY_MIN_PARTICIPANTS must be an integer, got {raw_min!r}.")

        randomness = os.getenv("BLOCKLUCKY_RANDOMNESS", "secure").strip().lower()
        if randomness not in RANDOMNESS_KINDS:
            raise RuntimeError(
                f"BLOCKLUCKY_RANDOMNESS must be one of {', '.join(RANDOMNESS_KINDS)}, got {randomness!r}."
            )

        seed = os.getenv("BLOCKLUCKY_SEED", "").strip() or None

        # If user provides --rpc-url, trust it.
        rpc_url = rpc_url_override or os.getenv("RPC_URL", "").strip() or None

        return Settings(
            state_file=state_file or DEFAULT_STATE_FILE,
            min_participants=min_participants,
            randomness=randomness,
            randomness_seed=seed,
            rpc_url=rpc_url,
        )
