from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict
from typing import Any, Dict

from .contract import Lottery
from .draw import DrawRecord
from .events import EventLog, event_from_dict
from .ledger import BlockContext, Ledger
from .randomness import RandomnessSource
from .state import LotteryRound

log = logging.getLogger(__name__)

FORMAT_VERSION = 1


def dump_deployment(lottery: Lottery) -> Dict[str, Any]:
    ledger = lottery.ledger
    return {
        "version": FORMAT_VERSION,
        "contract": {
            "address": lottery.address,
            "state": lottery.state.to_dict(),
        },
        "ledger": {
            "balances": dict(sorted(ledger.balances.items())),
            "rejecting": sorted(ledger.rejecting),
            "block": asdict(ledger.block),
        },
        "events": [e.to_dict() for e in lottery.events.entries],
        "draws": [d.to_dict() for d in lottery.draws],
    }


def restore_deployment(data: Dict[str, Any], randomness: RandomnessSource) -> Lottery:
    if data.get("version") != FORMAT_VERSION:
        raise RuntimeError(f"Unsupported state file version: {data.get('version')!r}")

    ledger = Ledger(block=BlockContext(**data["ledger"]["block"]))
    ledger.balances = {k: int(v) for k, v in data["ledger"]["balances"].items()}
    ledger.rejecting = set(data["ledger"]["rejecting"])

    events = EventLog()
    events.entries = [event_from_dict(e) for e in data["events"]]

    contract = data["contract"]
    state = LotteryRound.from_dict(contract["state"])
    lottery = Lottery(
        state.owner,
        state.min_participants,
        ledger=ledger,
        randomness=randomness,
        events=events,
        address=contract["address"],
        state=state,
    )
    lottery.draws = [DrawRecord.from_dict(d) for d in data["draws"]]
    return lottery


def save_deployment(lottery: Lottery, path: str) -> None:
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(dump_deployment(lottery), f, indent=2)
    os.replace(tmp_path, path)
    log.debug("Saved deployment to %s", path)


def load_deployment(path: str, randomness: RandomnessSource) -> Lottery:
    if not os.path.exists(path):
        raise RuntimeError(f"No deployment found at {path}. Run `blocklucky deploy` first.")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return restore_deployment(data, randomness)
