from typing import Callable, Dict, Iterator, List, Optional

from boxoffice.basket import Basket
from boxoffice.config import DEFAULT_CHANNEL
from boxoffice.hall import HallLayout
from boxoffice.inventory import SeatInventory
from boxoffice.logger import logger
from boxoffice.logging_service import OperationLog, SELL, RESERVE, UNRESERVE
from boxoffice.models import (
    Reservation, SeanceInfo, SeatKey, SeatRecord, SeatSnapshot, SeatStatus,
    CONFIGURED_STATUSES, TERMINAL_STATUSES,
)
from boxoffice.registry import ReservationRegistry

Listener = Callable[[str, List[SeatSnapshot]], None]

SELLABLE_STATUSES = (SeatStatus.FREE, SeatStatus.RESERVED)


class BoxOffice:
    """Касса одного зала: открытый сеанс, корзина, брони и журнал операций.

    Все изменения статусов мест проходят через commit_* и операции с бронями.
    После каждой операции состояние сохраняется, а подписчики получают
    событие ("sold", "reserved", "unreserved", "basket", "session")
    со списком затронутых мест - по нему UI перерисовывает зал,
    а модуль печати печатает билеты.
    """

    def __init__(self, hall: HallLayout, storage, operation_log: Optional[OperationLog] = None):
        self.hall = hall
        self.storage = storage
        self.operation_log = operation_log
        self.inventory = SeatInventory(storage)
        self.basket = Basket()
        self.registry = ReservationRegistry(storage)
        self.seance: Optional[SeanceInfo] = None
        self._listeners: List[Listener] = []

    @property
    def session_id(self) -> Optional[str]:
        return self.seance.id if self.seance else None

    @property
    def prices(self) -> Dict[str, int]:
        return self.seance.prices if self.seance else {}

    # ----- сеанс -----

    def open_session(self, seance: SeanceInfo):
        """Переключиться на сеанс: загрузить сохранённые статусы и брони"""
        self.seance = seance
        self.basket.clear()
        self.inventory.load_for_session(seance.id)
        self.registry.load_for_session(seance.id)

        configured = {}
        for place_key, place in seance.places.items():
            key = self.hall.key_from_place(place_key)
            if key is None:
                logger.warning(f"Seance {seance.id}: unknown place {place_key!r}")
                continue
            raw_status = place.get("status") if isinstance(place, dict) else place
            try:
                status = SeatStatus(raw_status or SeatStatus.FREE.value)
            except ValueError:
                logger.warning(f"Seance {seance.id}: invalid status {raw_status!r} for {place_key}")
                continue
            if status in CONFIGURED_STATUSES:
                configured[key] = status
            elif status != SeatStatus.FREE:
                self.inventory.seed(key, status, place if isinstance(place, dict) else None)
        self.inventory.apply_configured(configured)

        if self.registry.reconcile(self.inventory, self.snapshot):
            self._persist()
        logger.info(f"Session {seance.id} opened: {self.inventory.counts()}")
        self._notify("session", [])

    # ----- данные для отрисовки -----

    def snapshot(self, key: SeatKey) -> SeatSnapshot:
        return self.hall.snapshot(key, self.prices)

    def get_status(self, key: SeatKey) -> SeatStatus:
        return self.inventory.get_status(self.hall.canonical(key))

    def get_record(self, key: SeatKey) -> Optional[SeatRecord]:
        return self.inventory.get_record(self.hall.canonical(key))

    def get_price(self, key: SeatKey) -> int:
        return self.snapshot(self.hall.canonical(key)).price

    def seats(self) -> Iterator[dict]:
        for key in self.hall.iter_keys():
            record = self.inventory.get_record(key)
            yield {
                "seat": self.snapshot(key),
                "status": record.status if record else SeatStatus.FREE,
                "subject": record.subject if record else None,
                "channel": record.channel if record else None,
                "selected": key in self.basket
            }

    def list_reservations(self) -> Iterator[Reservation]:
        return self.registry.list()

    # ----- корзина -----

    def toggle(self, key: SeatKey) -> bool:
        """Выбрать место или снять выбор. Проданные и заблокированные места не трогаем"""
        if self.seance is None:
            logger.warning("Toggle ignored: no session opened")
            return False
        key = self.hall.canonical(key)
        if not self.hall.contains(key):
            logger.warning(f"Toggle ignored: {key} is not in the hall")
            return False

        status = self.inventory.get_status(key)
        if status in TERMINAL_STATUSES:
            logger.info(f"Toggle ignored: {key} is {status.value}")
            return False

        selected = self.basket.toggle(self.snapshot(key), status)
        self._notify("basket", self.basket.items())
        return selected

    def clear(self):
        self.basket.clear()
        self._notify("basket", [])

    # ----- операции -----

    def commit_sell(self, channel: str = DEFAULT_CHANNEL) -> List[SeatSnapshot]:
        """Продать все места из корзины. Возвращает проданные места для печати"""
        items = self._basket_items("Sell")
        if not items:
            return []
        sold = self._sell(items, channel or DEFAULT_CHANNEL)
        self.basket.clear()
        return sold

    def commit_reserve(self, subject: str) -> List[SeatSnapshot]:
        """Поставить места из корзины на бронь на имя subject"""
        subject = (subject or "").strip()
        if not subject:
            # корзину не трогаем, кассир должен ввести имя
            logger.warning("Reserve rejected: empty subject")
            return []
        items = self._basket_items("Reserve")
        if not items:
            return []

        targets = self._filter(items, SELLABLE_STATUSES, "reserve")
        if targets:
            self.inventory.bulk_set_status(
                [s.key for s in targets], SeatStatus.RESERVED, {"subject": subject},
                prices={s.key: s.price for s in targets}
            )
            reservation = self.registry.add(subject, targets)
            self.registry.reconcile(self.inventory, self.snapshot)
            logger.info(f"Reserved {len(targets)} seats for {subject}, reservation {reservation.id}")
            self._log(RESERVE, targets, subject=subject, reservation_id=reservation.id)
            self._persist()
            self._notify("reserved", targets)

        self.basket.clear()
        return targets

    def commit_unreserve(self) -> List[SeatSnapshot]:
        """Снять бронь с мест корзины; места не на брони пропускаются"""
        items = self._basket_items("Unreserve")
        if not items:
            return []
        freed = self._unreserve(items)
        self.basket.clear()
        return freed

    def sell_reservation(self, ref: str, channel: str = DEFAULT_CHANNEL) -> List[SeatSnapshot]:
        """Продать всю бронь (по id или имени) одной пачкой"""
        reservation = self._fresh_reservation(ref)
        if reservation is None:
            return []
        seats = list(reservation.seats)
        sold = self._sell(seats, channel or DEFAULT_CHANNEL, reservation_id=reservation.id)
        self.registry.remove(reservation)
        self.basket.discard(s.key for s in seats)
        return sold

    def cancel_reservation(self, ref: str) -> List[SeatSnapshot]:
        """Снять всю бронь (по id или имени)"""
        reservation = self._fresh_reservation(ref)
        if reservation is None:
            return []
        seats = list(reservation.seats)
        freed = self._unreserve(seats, reservation_id=reservation.id)
        self.registry.remove(reservation)
        self.basket.discard(s.key for s in seats)
        return freed

    # ----- подписчики -----

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ----- внутреннее -----

    def _basket_items(self, action: str) -> List[SeatSnapshot]:
        if self.seance is None:
            logger.warning(f"{action} ignored: no session opened")
            return []
        items = self.basket.items()
        if not items:
            logger.warning(f"{action} ignored: basket is empty")
        return items

    def _filter(self, seats: List[SeatSnapshot], allowed, action: str) -> List[SeatSnapshot]:
        targets = []
        for seat in seats:
            status = self.inventory.get_status(seat.key)
            if status in allowed:
                targets.append(seat)
            else:
                logger.warning(f"Skipping {seat.key} on {action}: seat is {status.value}")
        return targets

    def _fresh_reservation(self, ref: str) -> Optional[Reservation]:
        if self.seance is None:
            logger.warning("Reservation action ignored: no session opened")
            return None
        reservation = self.registry.find(ref)
        if reservation is None:
            logger.warning(f"Reservation {ref!r} not found")
            return None
        # сверяемся со статусами, кешу брони не доверяем
        if self.registry.reconcile(self.inventory, self.snapshot):
            self._persist()
        reservation = self.registry.find(reservation.id)
        if reservation is None:
            logger.warning(f"Reservation {ref!r} has no reserved seats left")
        return reservation

    def _sell(self, seats: List[SeatSnapshot], channel: str,
              reservation_id: Optional[str] = None) -> List[SeatSnapshot]:
        targets = self._filter(seats, SELLABLE_STATUSES, "sell")
        if not targets:
            return []
        keys = [s.key for s in targets]
        self.inventory.bulk_set_status(
            keys, SeatStatus.SOLD, {"channel": channel},
            prices={s.key: s.price for s in targets}
        )
        self.registry.remove_seats(keys)
        self.registry.reconcile(self.inventory, self.snapshot)
        logger.info(f"Sold {len(targets)} seats via {channel}, total {sum(s.price for s in targets)}")
        self._log(SELL, targets, channel=channel, reservation_id=reservation_id)
        self._persist()
        self._notify("sold", targets)
        return targets

    def _unreserve(self, seats: List[SeatSnapshot], reservation_id: Optional[str] = None) -> List[SeatSnapshot]:
        targets = [s for s in seats if self.inventory.get_status(s.key) == SeatStatus.RESERVED]
        if not targets:
            logger.info("Unreserve: no reserved seats selected")
            return []
        keys = [s.key for s in targets]
        self.inventory.bulk_set_status(keys, SeatStatus.FREE)
        self.registry.remove_seats(keys)
        self.registry.reconcile(self.inventory, self.snapshot)
        logger.info(f"Unreserved {len(targets)} seats")
        self._log(UNRESERVE, targets, reservation_id=reservation_id)
        self._persist()
        self._notify("unreserved", targets)
        return targets

    def _log(self, action: str, seats: List[SeatSnapshot], **details):
        if self.operation_log is not None:
            self.operation_log.log_action(action, self.session_id, seats, **details)

    def _persist(self):
        try:
            self.inventory.save_for_session(self.session_id)
            self.registry.save_for_session(self.session_id)
        except OSError as e:
            logger.error(f"Failed to save session {self.session_id}: {e}")

    def _notify(self, event: str, seats: List[SeatSnapshot]):
        for listener in list(self._listeners):
            try:
                listener(event, seats)
            except Exception as e:
                logger.error(f"Listener failed on {event}: {e}")
