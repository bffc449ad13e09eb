from typing import Callable, Dict, Iterable, Iterator, List, Optional
from uuid import uuid4

from boxoffice.inventory import SeatInventory, session_key, valid_price
from boxoffice.logger import logger
from boxoffice.models import Reservation, SeatKey, SeatSnapshot, SeatStatus

UNKNOWN_SUBJECT = "—"


class ReservationRegistry:
    """Брони, сгруппированные по тому, на кого они оформлены.

    Брони одного и того же человека/организации объединяются в одну запись.
    Источник истины по статусам мест - SeatInventory, реестр сверяется
    с ним через reconcile().
    """

    def __init__(self, storage):
        self.storage = storage
        self._reservations: List[Reservation] = []

    def list(self) -> Iterator[Reservation]:
        """Генератор по текущим броням.

        Каждый вызов даёт новый проход по снимку списка; исчерпанный
        генератор повторно не используется, нужно вызвать list() ещё раз.
        """
        for reservation in list(self._reservations):
            yield reservation

    def __len__(self):
        return len(self._reservations)

    def find(self, ref: str) -> Optional[Reservation]:
        """Найти бронь по id, а если такого нет - по имени"""
        if ref is None:
            return None
        for reservation in self._reservations:
            if reservation.id == ref:
                return reservation
        subject = ref.strip()
        for reservation in self._reservations:
            if reservation.subject == subject:
                return reservation
        return None

    def reservation_of(self, key: SeatKey) -> Optional[Reservation]:
        for reservation in self._reservations:
            if key in reservation.keys():
                return reservation
        return None

    def add(self, subject: str, seats: List[SeatSnapshot]) -> Reservation:
        subject = subject.strip()
        if not subject:
            raise ValueError("Reservation subject is required")

        reservation = self.find_by_subject(subject)
        # место может числиться только в одной брони
        self.remove_seats([s.key for s in seats], keep=reservation)

        if reservation is None:
            reservation = Reservation(id=uuid4().hex, subject=subject)
            self._reservations.append(reservation)
            logger.info(f"Reservation {reservation.id} created for {subject}")

        present = set(reservation.keys())
        for seat in seats:
            if seat.key not in present:
                reservation.seats.append(seat)
                present.add(seat.key)
        reservation.seats.sort(key=lambda s: s.key.sort_key())
        reservation.recompute_total()
        return reservation

    def find_by_subject(self, subject: str) -> Optional[Reservation]:
        for reservation in self._reservations:
            if reservation.subject == subject:
                return reservation
        return None

    def remove(self, reservation: Reservation):
        if reservation in self._reservations:
            self._reservations.remove(reservation)
            logger.info(f"Reservation {reservation.id} ({reservation.subject}) removed")

    def remove_seats(self, keys: Iterable[SeatKey], keep: Optional[Reservation] = None) -> List[Reservation]:
        """Убрать места из броней; пустые брони удаляются, суммы пересчитываются"""
        keys = set(keys)
        affected = []
        for reservation in list(self._reservations):
            if reservation is keep:
                continue
            kept = [s for s in reservation.seats if s.key not in keys]
            if len(kept) == len(reservation.seats):
                continue
            reservation.seats = kept
            reservation.recompute_total()
            affected.append(reservation)
            if not kept:
                self.remove(reservation)
        return affected

    def reconcile(self, inventory: SeatInventory, snapshot: Callable[[SeatKey], SeatSnapshot]) -> bool:
        """Привести реестр в соответствие со статусами мест.

        Возвращает True, если что-то пришлось исправить.
        """
        changed = False
        seen = set()

        for reservation in list(self._reservations):
            kept = []
            for seat in reservation.seats:
                if seat.key in seen or inventory.get_status(seat.key) != SeatStatus.RESERVED:
                    continue
                kept.append(seat)
                seen.add(seat.key)
            if len(kept) != len(reservation.seats):
                logger.warning(
                    f"Reservation {reservation.id} ({reservation.subject}) had "
                    f"{len(reservation.seats) - len(kept)} stale seats"
                )
                reservation.seats = kept
                changed = True
            reservation.recompute_total()
            if not kept:
                self.remove(reservation)

        orphans: Dict[str, List[SeatSnapshot]] = {}
        for key in inventory.keys_with_status(SeatStatus.RESERVED):
            if key in seen:
                continue
            record = inventory.get_record(key)
            seat = snapshot(key)
            if valid_price(record.price):
                seat.price = record.price
            subject = record.subject.strip() if isinstance(record.subject, str) else ""
            orphans.setdefault(subject or UNKNOWN_SUBJECT, []).append(seat)

        for subject, seats in orphans.items():
            logger.warning(f"Restoring {len(seats)} reserved seats without reservation for {subject}")
            self.add(subject, seats)
            changed = True

        return changed

    def dump(self) -> List[dict]:
        return [r.to_dict() for r in self._reservations]

    def restore(self, data: Optional[List[dict]]):
        reservations = []
        for raw in data or []:
            try:
                reservations.append(Reservation.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping invalid reservation {raw!r}: {e}")
        self._reservations = reservations

    def load_for_session(self, session_id: str):
        document = self.storage.load(session_key(session_id)) or {}
        self.restore(document.get("reservations"))
        logger.info(f"Loaded {len(self._reservations)} reservations for session {session_id}")

    def save_for_session(self, session_id: str):
        key = session_key(session_id)
        document = self.storage.load(key) or {}
        document["reservations"] = self.dump()
        self.storage.save(key, document)
