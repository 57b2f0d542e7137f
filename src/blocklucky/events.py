from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Type

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    slot: int = field(default=0, kw_only=True)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class TicketPurchased(Event):
    buyer: str
    ticket_price: int
    quantity: int
    new_participant_count: int


@dataclass(frozen=True)
class TicketsBought(Event):
    buyer: str
    quantity: int
    total_price: int
    discount: int


@dataclass(frozen=True)
class LotteryTriggered(Event):
    total_participants: int
    total_pot: int


@dataclass(frozen=True)
class WinnerSelected(Event):
    winner: str
    prize: int


@dataclass(frozen=True)
class LotteryReset(Event):
    new_min_participants: int


@dataclass(frozen=True)
class EmergencyWithdrawal(Event):
    owner: str
    amount: int


EVENT_TYPES: Dict[str, Type[Event]] = {
    cls.__name__: cls
    for cls in (
        TicketPurchased,
        TicketsBought,
        LotteryTriggered,
        WinnerSelected,
        LotteryReset,
        EmergencyWithdrawal,
    )
}


def event_from_dict(data: Dict[str, Any]) -> Event:
    payload = dict(data)
    name = payload.pop("event")
    try:
        cls = EVENT_TYPES[name]
    except KeyError:
        raise RuntimeError(f"Unknown event type {name!r}")
    return cls(**payload)


Subscriber = Callable[[Event], None]


class EventLog:
    """Append-only log. Subscribers see events only after their call commits."""

    def __init__(self) -> None:
        self.entries: List[Event] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, events: List[Event]) -> None:
        # The whole batch is logged before any subscriber runs.
        self.entries.extend(events)
        for event in events:
            log.debug("Event %s %s", event.name, event.to_dict())
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    log.exception("Subscriber %r failed on %s", callback, event.name)

    def of_type(self, cls: Type[Event]) -> List[Event]:
        return [e for e in self.entries if isinstance(e, cls)]
