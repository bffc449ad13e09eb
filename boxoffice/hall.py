from typing import List, Dict, Optional, Union, Iterator

from boxoffice.config import DEFAULT_BOX_SEATS
from boxoffice.models import SeatKey, SeatSnapshot, Zone, RowDef, BoxDef, ZONE_LABELS


def resolve_key(zone_descriptor: str, row_or_box_id: Union[int, str, None], seat_number: int) -> SeatKey:
    """Собрать ключ места из зоны, ряда (или ложи) и номера места.

    Зона задаётся как 'parter', 'amphi', 'balcony', 'box'/'boxes'
    (тогда id ложи передаётся вторым аргументом), 'box:<id>'
    или просто id ложи ('lodgeA', 'lodgeB').
    """
    try:
        seat = int(seat_number)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid seat number: {seat_number!r}")
    if seat < 1:
        raise ValueError(f"Invalid seat number: {seat_number!r}")

    descriptor = (zone_descriptor or "").strip()
    if descriptor.startswith("box:"):
        box_id = descriptor[len("box:"):]
        if not box_id:
            raise ValueError(f"Invalid zone: {zone_descriptor!r}")
        return SeatKey(zone=Zone.BOX, row=box_id, seat=seat)

    if descriptor in ("box", "boxes"):
        if row_or_box_id is None or str(row_or_box_id) == "":
            raise ValueError("Box id is required for box seats")
        return SeatKey(zone=Zone.BOX, row=str(row_or_box_id), seat=seat)

    if descriptor in (Zone.PARTER.value, Zone.AMPHI.value, Zone.BALCONY.value):
        try:
            row = int(row_or_box_id)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid row: {row_or_box_id!r}")
        return SeatKey(zone=Zone(descriptor), row=row, seat=seat)

    if descriptor:
        # lodgeA / lodgeB и прочие ложи по id
        return SeatKey(zone=Zone.BOX, row=descriptor, seat=seat)

    raise ValueError(f"Invalid zone: {zone_descriptor!r}")


def resolve_price(layout: "HallLayout", zone: Zone, row_or_box_id: Union[int, str], prices: Optional[Dict[str, int]]) -> int:
    """Цена места по ценовой группе ряда или ложи; 0 если группы или цены нет"""
    group = layout.price_group(zone, row_or_box_id)
    if not group or not prices:
        return 0
    try:
        price = int(prices.get(group, 0) or 0)
    except (TypeError, ValueError):
        return 0
    return max(price, 0)


class HallLayout:
    """Схема зала: ряды по зонам и ложи"""

    def __init__(self, name: str = "", rows: List[RowDef] = None, boxes: List[BoxDef] = None):
        self.name = name
        self.rows = rows or []
        self.boxes = boxes or []
        self._rows = {(r.zone, r.row): r for r in self.rows}
        self._boxes = {b.id.lower(): b for b in self.boxes}

    @classmethod
    def from_dict(cls, data: dict) -> "HallLayout":
        rows = []
        for row_data in data.get("rows", []):
            seats = row_data.get("seats")
            rows.append(RowDef(
                zone=Zone(row_data.get("zone", Zone.PARTER.value)),
                row=int(row_data["row"]),
                seats=seats if isinstance(seats, int) else None,
                seats_left=int(row_data.get("seats_left") or 0),
                seats_right=int(row_data.get("seats_right") or 0),
                aisle_after=row_data.get("aisle_after"),
                price_group=row_data.get("price_group")
            ))

        boxes = []
        for box_data in data.get("boxes", []) or []:
            boxes.append(BoxDef(
                id=str(box_data["id"]),
                side=(box_data.get("side") or "").lower(),
                label=box_data.get("label") or "",
                seats=int(box_data.get("seats") or DEFAULT_BOX_SEATS),
                price_group=box_data.get("price_group")
            ))

        return cls(name=data.get("name", ""), rows=rows, boxes=boxes)

    def row_def(self, zone: Zone, row: int) -> Optional[RowDef]:
        return self._rows.get((zone, row))

    def box_def(self, box_id: str) -> Optional[BoxDef]:
        return self._boxes.get(str(box_id).lower())

    def find_row(self, row: int) -> Optional[RowDef]:
        """Первый ряд с таким номером в любой зоне"""
        for row_def in self.rows:
            if row_def.row == row:
                return row_def
        return None

    @staticmethod
    def seat_count(row_def: RowDef) -> int:
        if row_def.seats is not None:
            return row_def.seats
        return row_def.seats_left + row_def.seats_right

    @staticmethod
    def aisle_after(row_def: RowDef) -> Optional[int]:
        if row_def.seats is not None:
            return row_def.aisle_after or None
        # проход между левым и правым блоком
        return row_def.seats_left or None

    def price_group(self, zone: Zone, row_or_box_id: Union[int, str]) -> Optional[str]:
        if zone == Zone.BOX:
            box = self.box_def(row_or_box_id)
            return box.price_group if box else None
        try:
            row_def = self.row_def(zone, int(row_or_box_id))
        except (TypeError, ValueError):
            return None
        return row_def.price_group if row_def else None

    def contains(self, key: SeatKey) -> bool:
        if key.zone == Zone.BOX:
            box = self.box_def(key.row)
            return box is not None and 1 <= key.seat <= box.seats
        row_def = self.row_def(key.zone, key.row)
        return row_def is not None and 1 <= key.seat <= self.seat_count(row_def)

    def canonical(self, key: SeatKey) -> SeatKey:
        """Ключ ложи с id в том регистре, как он задан в схеме"""
        if key.zone == Zone.BOX:
            box = self.box_def(key.row)
            if box and box.id != key.row:
                return SeatKey(zone=Zone.BOX, row=box.id, seat=key.seat)
        return key

    def iter_keys(self) -> Iterator[SeatKey]:
        for zone in (Zone.PARTER, Zone.BOX, Zone.AMPHI, Zone.BALCONY):
            if zone == Zone.BOX:
                for box in self.boxes:
                    for seat in range(1, box.seats + 1):
                        yield SeatKey(zone=Zone.BOX, row=box.id, seat=seat)
                continue
            for row_def in self.rows:
                if row_def.zone != zone:
                    continue
                for seat in range(1, self.seat_count(row_def) + 1):
                    yield SeatKey(zone=zone, row=row_def.row, seat=seat)

    def snapshot(self, key: SeatKey, prices: Optional[Dict[str, int]]) -> SeatSnapshot:
        if key.zone == Zone.BOX:
            box = self.box_def(key.row)
            row_label = (box.label or box.id) if box else str(key.row)
        else:
            row_label = f"Ряд {key.row}"
        return SeatSnapshot(
            key=key,
            price=resolve_price(self, key.zone, key.row, prices),
            zone_label=ZONE_LABELS[key.zone],
            row_label=row_label,
            seat_label=str(key.seat)
        )

    def key_from_place(self, place_key: str) -> Optional[SeatKey]:
        """Ключ из файла сеанса: 'ряд-место' или 'boxA-место'"""
        if ":" in place_key:
            try:
                key = SeatKey.parse(place_key)
            except ValueError:
                return None
            return self.canonical(key) if self.contains(key) else None

        head, sep, seat_str = place_key.rpartition("-")
        if not sep or not seat_str.isdigit():
            return None
        seat = int(seat_str)

        if head.lower().startswith("box") or self.box_def(head):
            box = self.box_def(head)
            if not box:
                return None
            key = SeatKey(zone=Zone.BOX, row=box.id, seat=seat)
        else:
            if not head.isdigit():
                return None
            row_def = self.find_row(int(head))
            if not row_def:
                return None
            key = SeatKey(zone=row_def.zone, row=row_def.row, seat=seat)

        return key if self.contains(key) else None
