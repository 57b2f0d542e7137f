from __future__ import annotations

import json
from typing import Any, List, Optional
import httpx

from .ledger import BlockContext


class RpcClient:
    """Minimal JSON-RPC client for sourcing finalized block metadata as draw entropy."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    def _call(self, method: str, params: List[Any]) -> Any:
        resp = self.client.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
        )
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data.get("result")

    def get_slot(self, commitment: str = "finalized") -> int:
        """Returns the current slot."""
        return int(self._call("getSlot", [{"commitment": commitment}]))

    def get_block_time(self, slot: int) -> int:
        """Returns the Unix timestamp for a given slot."""
        result = self._call("getBlockTime", [slot])
        if result is None:
            raise RuntimeError(f"Timestamp not available for slot {slot}")
        return int(result)

    def get_blockhash_for_slot(self, slot: int) -> str:
        result = self._call(
            "getBlock",
            [slot, {"encoding": "json", "transactionDetails": "none", "rewards": False}],
        )
        if not result or "blockhash" not in result:
            raise RuntimeError(f"Slot {slot}: getBlock returned no blockhash.")
        return result["blockhash"]

    def get_block_context(self, slot: int) -> BlockContext:
        return BlockContext(
            slot=slot,
            timestamp=self.get_block_time(slot),
            blockhash=self.get_blockhash_for_slot(slot),
        )


def load_seed_from_block_feed_file(path: str, slot_hint: Optional[int] = None) -> str:
    """
    Reads a blockhash from either a raw string file or a JSON object
    {"blockhash": "...", "slot": 123}, where "slot" is optional and, when
    present, must match `slot_hint`.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read().strip()

    if raw and not raw.startswith("{"):
        return raw

    try:
        feed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Block feed file is not valid JSON or raw string: {e}")

    blockhash = feed.get("blockhash") if isinstance(feed, dict) else None
    if not isinstance(blockhash, str) or not blockhash:
        raise RuntimeError('Block feed file must be a raw blockhash or {"blockhash": ...}.')
    if slot_hint is not None and "slot" in feed and int(feed["slot"]) != slot_hint:
        raise RuntimeError(
            f"Block feed slot mismatch: file slot={feed['slot']} vs expected slot={slot_hint}"
        )
    return blockhash
