from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Union
from datetime import datetime


class SeatStatus(str, Enum):
    FREE = "free"
    RESERVED = "reserved"
    SOLD = "sold"
    BLOCKED = "blocked"
    INACTIVE = "inactive"


# Из этих статусов касса место не выводит
TERMINAL_STATUSES = frozenset({SeatStatus.SOLD, SeatStatus.BLOCKED, SeatStatus.INACTIVE})
CONFIGURED_STATUSES = frozenset({SeatStatus.BLOCKED, SeatStatus.INACTIVE})


class Zone(str, Enum):
    PARTER = "parter"
    AMPHI = "amphi"
    BALCONY = "balcony"
    BOX = "box"


ZONE_ORDER = [Zone.PARTER, Zone.BOX, Zone.AMPHI, Zone.BALCONY]

ZONE_LABELS = {
    Zone.PARTER: "Партер",
    Zone.AMPHI: "Амфітеатр",
    Zone.BALCONY: "Балкон",
    Zone.BOX: "Ложа",
}


@dataclass(frozen=True)
class SeatKey:
    """Место в зале: зона, ряд (или id ложи) и номер места"""
    zone: Zone
    row: Union[int, str]
    seat: int

    def encode(self) -> str:
        return f"{self.zone.value}:{self.row}:{self.seat}"

    @classmethod
    def parse(cls, text: str) -> "SeatKey":
        """Разобрать строку вида 'parter:5:3' или 'box:lodgeA:3'"""
        try:
            zone_str, rest = text.split(":", 1)
            row_str, seat_str = rest.rsplit(":", 1)
            zone = Zone(zone_str)
            seat = int(seat_str)
            row = row_str if zone == Zone.BOX else int(row_str)
        except ValueError:
            raise ValueError(f"Invalid seat key: {text!r}")
        if seat < 1 or row == "":
            raise ValueError(f"Invalid seat key: {text!r}")
        return cls(zone=zone, row=row, seat=seat)

    def sort_key(self):
        if isinstance(self.row, int):
            return (ZONE_ORDER.index(self.zone), self.row, "", self.seat)
        return (ZONE_ORDER.index(self.zone), 0, self.row.lower(), self.seat)

    def __str__(self):
        return self.encode()


@dataclass
class SeatRecord:
    status: SeatStatus
    subject: Optional[str] = None
    channel: Optional[str] = None
    price: Optional[int] = None
    ts: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"status": self.status.value}
        for name in ("subject", "channel", "price", "ts"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SeatRecord":
        return cls(
            status=SeatStatus(data["status"]),
            subject=data.get("subject"),
            channel=data.get("channel"),
            price=data.get("price"),
            ts=data.get("ts")
        )


@dataclass
class SeatSnapshot:
    """Данные места на момент выбора (для корзины, брони и печати)"""
    key: SeatKey
    price: int = 0
    zone_label: str = ""
    row_label: str = ""
    seat_label: str = ""

    @property
    def zone(self) -> Zone:
        return self.key.zone

    @property
    def row(self) -> Union[int, str]:
        return self.key.row

    @property
    def seat(self) -> int:
        return self.key.seat

    def to_dict(self) -> dict:
        return {
            "key": self.key.encode(),
            "zone": self.zone.value,
            "row": self.row,
            "seat": self.seat,
            "price": self.price,
            "zone_label": self.zone_label,
            "row_label": self.row_label,
            "seat_label": self.seat_label
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SeatSnapshot":
        return cls(
            key=SeatKey.parse(data["key"]),
            price=int(data.get("price", 0)),
            zone_label=data.get("zone_label", ""),
            row_label=data.get("row_label", ""),
            seat_label=str(data.get("seat_label", ""))
        )


@dataclass
class Reservation:
    id: str
    subject: str
    seats: List[SeatSnapshot] = field(default_factory=list)
    total: int = 0
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def keys(self) -> List[SeatKey]:
        return [s.key for s in self.seats]

    def recompute_total(self) -> int:
        self.total = sum(s.price for s in self.seats)
        return self.total

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject": self.subject,
            "seats": [s.to_dict() for s in self.seats],
            "total": self.total,
            "createdAt": self.created_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reservation":
        reservation = cls(
            id=data["id"],
            subject=data["subject"],
            seats=[SeatSnapshot.from_dict(s) for s in data.get("seats", [])],
            created_at=data.get("createdAt") or datetime.now().isoformat()
        )
        reservation.recompute_total()
        return reservation


@dataclass
class RowDef:
    zone: Zone
    row: int
    seats: Optional[int] = None
    seats_left: int = 0
    seats_right: int = 0
    aisle_after: Optional[int] = None
    price_group: Optional[str] = None


@dataclass
class BoxDef:
    id: str
    side: str = ""
    label: str = ""
    seats: int = 18
    price_group: Optional[str] = None


@dataclass
class Seance:
    id: str
    label: str
    url: str


@dataclass
class SeanceInfo:
    """Содержимое файла сеанса: цены и настроенные статусы мест"""
    id: str
    title: str = ""
    datetime: str = ""
    prices: Dict[str, int] = field(default_factory=dict)
    places: Dict[str, dict] = field(default_factory=dict)
