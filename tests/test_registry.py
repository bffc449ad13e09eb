import pytest

from boxoffice.inventory import SeatInventory, session_key
from boxoffice.models import SeatKey, SeatSnapshot, SeatStatus, Zone
from boxoffice.registry import ReservationRegistry, UNKNOWN_SUBJECT
from boxoffice.storage import MemoryStorage


def seat(row, number, price):
    return SeatSnapshot(key=SeatKey(Zone.PARTER, row, number), price=price)


def make_snapshot(key):
    return SeatSnapshot(key=key, price=50)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def registry(storage):
    return ReservationRegistry(storage)


@pytest.fixture
def inventory(storage):
    return SeatInventory(storage)


class TestAdd:
    def test_creates_reservation_with_total(self, registry):
        reservation = registry.add("Group A", [seat(1, 1, 100), seat(1, 2, 120)])

        assert reservation.subject == "Group A"
        assert reservation.total == 220
        assert len(reservation.seats) == 2
        assert reservation.id
        assert reservation.created_at

    def test_merges_by_subject(self, registry):
        first = registry.add("Ivanenko", [seat(1, 1, 100)])
        second = registry.add(" Ivanenko ", [seat(1, 2, 120), seat(1, 1, 100)])

        assert first is second
        assert len(registry) == 1
        assert [s.key.seat for s in first.seats] == [1, 2]
        assert first.total == 220

    def test_seat_moves_between_subjects(self, registry):
        registry.add("Petrenko", [seat(1, 1, 100), seat(1, 2, 100)])
        registry.add("Ivanenko", [seat(1, 2, 100)])

        assert registry.find("Petrenko").total == 100
        assert registry.find("Ivanenko").keys() == [SeatKey(Zone.PARTER, 1, 2)]

    def test_empty_subject_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.add("  ", [seat(1, 1, 100)])


class TestRemoveSeats:
    def test_partial_removal_recomputes_total(self, registry):
        reservation = registry.add("Group A", [seat(1, 1, 100), seat(1, 2, 120)])

        affected = registry.remove_seats([SeatKey(Zone.PARTER, 1, 1)])

        assert affected == [reservation]
        assert reservation.total == 120
        assert len(registry) == 1

    def test_empty_reservation_is_deleted(self, registry):
        registry.add("Group A", [seat(1, 1, 100)])
        registry.remove_seats([SeatKey(Zone.PARTER, 1, 1)])
        assert len(registry) == 0
        assert registry.find("Group A") is None


class TestFindAndList:
    def test_find_by_id_then_subject(self, registry):
        reservation = registry.add("Group A", [seat(1, 1, 100)])
        assert registry.find(reservation.id) is reservation
        assert registry.find("Group A") is reservation
        assert registry.find("Group B") is None
        assert registry.reservation_of(SeatKey(Zone.PARTER, 1, 1)) is reservation

    def test_list_is_restartable_and_fresh(self, registry):
        registry.add("A", [seat(1, 1, 100)])
        registry.add("B", [seat(1, 2, 100)])

        listing = registry.list
        assert [r.subject for r in listing()] == ["A", "B"]
        assert [r.subject for r in listing()] == ["A", "B"]

        registry.remove_seats([SeatKey(Zone.PARTER, 1, 1)])
        assert [r.subject for r in listing()] == ["B"]


class TestReconcile:
    def test_drops_seats_not_reserved_in_store(self, registry, inventory):
        registry.add("Group A", [seat(1, 1, 100), seat(1, 2, 120)])
        inventory.set_status(SeatKey(Zone.PARTER, 1, 2), SeatStatus.RESERVED, {"subject": "Group A"})

        assert registry.reconcile(inventory, make_snapshot) is True
        reservation = registry.find("Group A")
        assert reservation.keys() == [SeatKey(Zone.PARTER, 1, 2)]
        assert reservation.total == 120

    def test_regroups_orphaned_reserved_seats(self, registry, inventory):
        inventory.set_status(SeatKey(Zone.PARTER, 2, 1), SeatStatus.RESERVED, {"subject": "Koval", "price": 90})
        inventory.set_status(SeatKey(Zone.PARTER, 2, 2), SeatStatus.RESERVED)

        assert registry.reconcile(inventory, make_snapshot) is True
        assert registry.find("Koval").total == 90
        assert registry.find(UNKNOWN_SUBJECT).total == 50

    def test_blank_subject_and_bad_price_from_storage(self, registry, inventory):
        inventory.restore({
            "parter:2:1": {"status": "reserved", "subject": "   "},
            "parter:2:2": {"status": "reserved", "subject": " Koval ", "price": "90"},
        })

        assert registry.reconcile(inventory, make_snapshot) is True
        assert registry.find(UNKNOWN_SUBJECT).keys() == [SeatKey(Zone.PARTER, 2, 1)]
        assert registry.find("Koval").total == 50

    def test_consistent_registry_is_untouched(self, registry, inventory):
        registry.add("Group A", [seat(1, 1, 100)])
        inventory.set_status(SeatKey(Zone.PARTER, 1, 1), SeatStatus.RESERVED, {"subject": "Group A"})
        assert registry.reconcile(inventory, make_snapshot) is False

    def test_every_reserved_seat_in_exactly_one_reservation(self, registry, inventory):
        registry.add("A", [seat(1, 1, 100)])
        # копия того же места в чужой брони после ручной правки файла
        registry.restore(registry.dump() + [{
            "id": "dup", "subject": "B",
            "seats": [seat(1, 1, 100).to_dict()], "total": 100,
        }])
        inventory.set_status(SeatKey(Zone.PARTER, 1, 1), SeatStatus.RESERVED, {"subject": "A"})

        registry.reconcile(inventory, make_snapshot)
        holders = [r for r in registry.list() if SeatKey(Zone.PARTER, 1, 1) in r.keys()]
        assert len(holders) == 1


class TestPersistence:
    def test_save_and_load(self, storage, registry):
        reservation = registry.add("Group A", [seat(1, 1, 100)])
        registry.save_for_session("s1")

        loaded = ReservationRegistry(storage)
        loaded.load_for_session("s1")
        restored = loaded.find(reservation.id)
        assert restored.subject == "Group A"
        assert restored.total == 100
        assert storage.load(session_key("s1"))["reservations"][0]["createdAt"] == reservation.created_at

    def test_restore_recomputes_total_and_skips_broken(self, registry):
        registry.restore([
            {"id": "r1", "subject": "A", "seats": [seat(1, 1, 100).to_dict()], "total": 999},
            {"subject": "no id"},
        ])
        assert len(registry) == 1
        assert registry.find("r1").total == 100
