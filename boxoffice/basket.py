from typing import Dict, List

from boxoffice.models import SeatKey, SeatSnapshot, SeatStatus, TERMINAL_STATUSES


class Basket:
    """Корзина кассира: выбранные места до продажи или брони"""

    def __init__(self):
        self._items: Dict[SeatKey, SeatSnapshot] = {}

    def toggle(self, snapshot: SeatSnapshot, status: SeatStatus) -> bool:
        """Добавить или убрать место. Возвращает True, если место теперь в корзине"""
        if status in TERMINAL_STATUSES:
            return False
        if snapshot.key in self._items:
            del self._items[snapshot.key]
            return False
        self._items[snapshot.key] = snapshot
        return True

    def discard(self, keys):
        for key in keys:
            self._items.pop(key, None)

    def clear(self):
        self._items.clear()

    def items(self) -> List[SeatSnapshot]:
        return sorted(self._items.values(), key=lambda s: s.key.sort_key())

    def keys(self) -> List[SeatKey]:
        return [s.key for s in self.items()]

    @property
    def total(self) -> int:
        return sum(s.price for s in self._items.values())

    def __contains__(self, key: SeatKey) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
