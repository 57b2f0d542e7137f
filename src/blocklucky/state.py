from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Set

from .project_constants import TICKET_PRICE, ZERO_ADDRESS


@dataclass
class LotteryRound:
    """Storage of one deployment. Reset in place; past rounds live only in events."""

    owner: str
    min_participants: int
    ticket_price: int = TICKET_PRICE
    participants: List[str] = field(default_factory=list)
    tickets_by_address: Dict[str, int] = field(default_factory=dict)
    has_participated: Set[str] = field(default_factory=set)
    pot: int = 0
    active: bool = True
    completed: bool = False
    winner: str = ZERO_ADDRESS

    @property
    def total_tickets(self) -> int:
        return sum(self.tickets_by_address.values())

    def record_tickets(self, buyer: str, quantity: int) -> bool:
        """Credit `quantity` tickets to `buyer`. Returns True for a new participant."""
        self.tickets_by_address[buyer] = self.tickets_by_address.get(buyer, 0) + quantity
        if buyer in self.has_participated:
            return False
        self.has_participated.add(buyer)
        self.participants.append(buyer)
        return True

    def clear(self, min_participants: int) -> None:
        self.participants = []
        self.tickets_by_address = {}
        self.has_participated = set()
        self.pot = 0
        self.winner = ZERO_ADDRESS
        self.min_participants = min_participants
        self.active = True
        self.completed = False

    def snapshot(self) -> "LotteryRound":
        return copy.deepcopy(self)

    def restore(self, snap: "LotteryRound") -> None:
        self.__dict__.update(copy.deepcopy(snap).__dict__)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["has_participated"] = sorted(self.has_participated)
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "LotteryRound":
        data = dict(data)
        data["has_participated"] = set(data.get("has_participated", []))
        return LotteryRound(**data)
