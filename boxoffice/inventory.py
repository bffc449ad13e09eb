from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, Optional, Set

from boxoffice.config import STORAGE_PREFIX
from boxoffice.logger import logger
from boxoffice.models import SeatKey, SeatRecord, SeatStatus, CONFIGURED_STATUSES


def session_key(session_id: str) -> str:
    return f"{STORAGE_PREFIX}{session_id}"


def valid_price(price) -> bool:
    return isinstance(price, int) and not isinstance(price, bool) and price >= 0


class SeatInventory:
    """Статусы мест текущего сеанса.

    Хранилище ничего не запрещает: допустимость переходов проверяют
    операции кассы (BoxOffice). Отсутствие записи означает свободное место.
    """

    def __init__(self, storage):
        self.storage = storage
        self.session_id: Optional[str] = None
        self._records: Dict[SeatKey, SeatRecord] = {}
        # статусы из файла сеанса (blocked/inactive)
        self._configured: Dict[SeatKey, SeatStatus] = {}
        # места с начальным sold/reserved из файла сеанса
        self._seeded: Set[SeatKey] = set()

    def get_status(self, key: SeatKey) -> SeatStatus:
        record = self._records.get(key)
        return record.status if record else SeatStatus.FREE

    def get_record(self, key: SeatKey) -> Optional[SeatRecord]:
        return self._records.get(key)

    def set_status(self, key: SeatKey, status: SeatStatus, metadata: Optional[dict] = None):
        self.bulk_set_status([key], status, metadata)

    def bulk_set_status(self, keys: Iterable[SeatKey], status: SeatStatus, metadata: Optional[dict] = None,
                        prices: Optional[Dict[SeatKey, int]] = None):
        """Один статус для многих мест: всё проверяется до первой записи"""
        status = SeatStatus(status)
        keys = list(keys)
        for key in keys:
            if not isinstance(key, SeatKey):
                raise ValueError(f"Invalid seat key: {key!r}")
        metadata = dict(metadata or {})
        unknown = set(metadata) - {"subject", "channel", "price"}
        if unknown:
            raise ValueError(f"Unknown seat metadata: {sorted(unknown)}")
        prices = prices or {}
        if "price" in metadata and not valid_price(metadata["price"]):
            raise ValueError(f"Invalid price {metadata['price']!r}")
        for key, price in prices.items():
            if not valid_price(price):
                raise ValueError(f"Invalid price {price!r} for {key}")

        ts = datetime.now().isoformat()
        if status == SeatStatus.FREE:
            for key in keys:
                if key in self._seeded:
                    # засеянное место остаётся явно свободным
                    self._records[key] = SeatRecord(status=SeatStatus.FREE, ts=ts)
                else:
                    self._records.pop(key, None)
            return

        for key in keys:
            record = SeatRecord(status=status, ts=ts, **metadata)
            if key in prices:
                record.price = prices[key]
            self._records[key] = record

    def keys_with_status(self, status: SeatStatus):
        return [key for key, record in self._records.items() if record.status == status]

    def counts(self) -> Dict[str, int]:
        counter = Counter(
            record.status.value for record in self._records.values()
            if record.status != SeatStatus.FREE
        )
        return dict(counter)

    def seed(self, key: SeatKey, status: SeatStatus, place: Optional[dict] = None):
        """Начальный sold/reserved из файла сеанса.

        Применяется только если по месту ещё нет сохранённой записи.
        Некорректные subject/channel/price из файла отбрасываются.
        """
        status = SeatStatus(status)
        if status not in (SeatStatus.SOLD, SeatStatus.RESERVED):
            return
        self._seeded.add(key)
        if key in self._records:
            return

        metadata = {}
        for name in ("subject", "channel"):
            value = (place or {}).get(name)
            if isinstance(value, str) and value.strip():
                metadata[name] = value.strip()
            elif value is not None:
                logger.warning(f"Ignoring invalid {name} {value!r} for {key}")
        price = (place or {}).get("price")
        if valid_price(price):
            metadata["price"] = price
        elif price is not None:
            logger.warning(f"Ignoring invalid price {price!r} for {key}")
        self.set_status(key, status, metadata)

    def apply_configured(self, configured: Dict[SeatKey, SeatStatus]):
        """Наложить blocked/inactive из конфигурации сеанса поверх сохранённых статусов"""
        self._configured = {}
        for key, status in configured.items():
            status = SeatStatus(status)
            if status not in CONFIGURED_STATUSES:
                continue
            self._configured[key] = status
            self._records[key] = SeatRecord(status=status)

    def dump(self) -> Dict[str, dict]:
        # статусы из конфигурации не сохраняем, они приходят из файла сеанса
        return {
            key.encode(): record.to_dict()
            for key, record in self._records.items()
            if self._configured.get(key) != record.status
        }

    def restore(self, data: Optional[Dict[str, dict]]):
        records = {}
        for raw_key, raw_record in (data or {}).items():
            try:
                records[SeatKey.parse(raw_key)] = SeatRecord.from_dict(raw_record)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping invalid seat state {raw_key!r}: {e}")
        self._records = records

    def load_for_session(self, session_id: str):
        """Подменить карту статусов на сохранённую для сеанса"""
        document = self.storage.load(session_key(session_id)) or {}
        self.session_id = session_id
        self._configured = {}
        self._seeded = set()
        self.restore(document.get("seatStatuses"))
        logger.info(f"Loaded {len(self._records)} seat states for session {session_id}")

    def save_for_session(self, session_id: Optional[str] = None):
        session_id = session_id or self.session_id
        if session_id is None:
            raise ValueError("No session to save")
        key = session_key(session_id)
        document = self.storage.load(key) or {}
        document["seatStatuses"] = self.dump()
        self.storage.save(key, document)
