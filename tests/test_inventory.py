import pytest

from boxoffice.inventory import SeatInventory, session_key
from boxoffice.models import SeatKey, SeatStatus, Zone
from boxoffice.storage import MemoryStorage

SEAT = SeatKey(Zone.PARTER, 5, 3)
OTHER = SeatKey(Zone.BALCONY, 5, 3)


@pytest.fixture
def inventory():
    return SeatInventory(MemoryStorage())


class TestStatus:
    def test_absent_key_is_free(self, inventory):
        assert inventory.get_status(SEAT) == SeatStatus.FREE
        assert inventory.get_record(SEAT) is None

    def test_set_status_with_metadata(self, inventory):
        inventory.set_status(SEAT, SeatStatus.RESERVED, {"subject": "Ivanenko", "price": 150})

        record = inventory.get_record(SEAT)
        assert record.status == SeatStatus.RESERVED
        assert record.subject == "Ivanenko"
        assert record.price == 150
        assert record.ts
        assert inventory.get_status(OTHER) == SeatStatus.FREE

    def test_store_does_not_veto_transitions(self, inventory):
        inventory.set_status(SEAT, SeatStatus.SOLD)
        inventory.set_status(SEAT, SeatStatus.RESERVED)
        assert inventory.get_status(SEAT) == SeatStatus.RESERVED

    def test_free_strips_metadata(self, inventory):
        inventory.set_status(SEAT, SeatStatus.RESERVED, {"subject": "Ivanenko"})
        inventory.set_status(SEAT, SeatStatus.FREE)
        assert inventory.get_record(SEAT) is None

    def test_bulk_set_status(self, inventory):
        inventory.bulk_set_status([SEAT, OTHER], SeatStatus.SOLD, {"channel": "boxoffice"},
                                  prices={SEAT: 150, OTHER: 120})
        assert inventory.get_record(SEAT).price == 150
        assert inventory.get_record(OTHER).channel == "boxoffice"
        assert inventory.counts() == {"sold": 2}

    @pytest.mark.parametrize("kwargs", [
        {"status": "stolen"},
        {"status": SeatStatus.SOLD, "metadata": {"color": "red"}},
        {"status": SeatStatus.SOLD, "prices": {SEAT: -1}},
        {"status": SeatStatus.RESERVED, "metadata": {"price": "150"}},
    ])
    def test_bulk_set_status_validates_before_writing(self, inventory, kwargs):
        with pytest.raises(ValueError):
            inventory.bulk_set_status([SEAT, OTHER], **kwargs)
        assert inventory.counts() == {}

    def test_bulk_set_status_rejects_raw_string_keys(self, inventory):
        with pytest.raises(ValueError):
            inventory.bulk_set_status([SEAT, "parter:1:1"], SeatStatus.SOLD)
        assert inventory.get_status(SEAT) == SeatStatus.FREE


class TestConfigured:
    def test_configured_status_wins_and_is_not_saved(self, inventory):
        inventory.set_status(SEAT, SeatStatus.SOLD)
        inventory.apply_configured({SEAT: SeatStatus.BLOCKED, OTHER: SeatStatus.SOLD})

        assert inventory.get_status(SEAT) == SeatStatus.BLOCKED
        # только blocked/inactive приходят из конфигурации
        assert inventory.get_status(OTHER) == SeatStatus.FREE
        assert inventory.dump() == {}


class TestSeed:
    def test_seed_applies_only_without_record(self, inventory):
        inventory.set_status(SEAT, SeatStatus.SOLD, {"channel": "online"})

        inventory.seed(SEAT, SeatStatus.RESERVED, {"subject": "Bondar"})
        inventory.seed(OTHER, SeatStatus.RESERVED, {"subject": " Bondar ", "price": 90})

        assert inventory.get_record(SEAT).channel == "online"
        assert inventory.get_record(OTHER).subject == "Bondar"
        assert inventory.get_record(OTHER).price == 90

    def test_seed_drops_invalid_metadata(self, inventory):
        inventory.seed(SEAT, SeatStatus.RESERVED, {"subject": "  ", "channel": 7, "price": -3})

        record = inventory.get_record(SEAT)
        assert record.status == SeatStatus.RESERVED
        assert (record.subject, record.channel, record.price) == (None, None, None)

    def test_freed_seeded_seat_is_saved_as_free(self):
        storage = MemoryStorage()
        inventory = SeatInventory(storage)
        inventory.load_for_session("s1")
        inventory.seed(SEAT, SeatStatus.RESERVED, {"subject": "Bondar"})
        inventory.set_status(SEAT, SeatStatus.FREE)
        inventory.save_for_session()

        assert storage.load(session_key("s1"))["seatStatuses"]["parter:5:3"]["status"] == "free"
        assert inventory.get_status(SEAT) == SeatStatus.FREE
        assert inventory.counts() == {}

        reloaded = SeatInventory(storage)
        reloaded.load_for_session("s1")
        reloaded.seed(SEAT, SeatStatus.RESERVED, {"subject": "Bondar"})
        assert reloaded.get_status(SEAT) == SeatStatus.FREE


class TestPersistence:
    def test_sessions_are_isolated(self):
        storage = MemoryStorage()
        inventory = SeatInventory(storage)

        inventory.load_for_session("s1")
        inventory.set_status(SEAT, SeatStatus.SOLD, {"channel": "boxoffice"})
        inventory.save_for_session("s1")

        inventory.load_for_session("s2")
        assert inventory.get_status(SEAT) == SeatStatus.FREE

        inventory.load_for_session("s1")
        assert inventory.get_status(SEAT) == SeatStatus.SOLD
        assert storage.documents[session_key("s1")]["seatStatuses"]["parter:5:3"]["channel"] == "boxoffice"

    def test_save_keeps_other_document_parts(self):
        storage = MemoryStorage()
        storage.save(session_key("s1"), {"reservations": [{"id": "r1"}]})
        inventory = SeatInventory(storage)
        inventory.load_for_session("s1")
        inventory.set_status(SEAT, SeatStatus.SOLD)
        inventory.save_for_session()

        document = storage.load(session_key("s1"))
        assert document["reservations"] == [{"id": "r1"}]
        assert "parter:5:3" in document["seatStatuses"]

    def test_restore_skips_invalid_entries(self, inventory):
        inventory.restore({
            "parter:5:3": {"status": "sold"},
            "nowhere": {"status": "sold"},
            "balcony:5:3": {"status": "lost"},
            "amphi:6:1": {},
        })
        assert inventory.get_status(SEAT) == SeatStatus.SOLD
        assert inventory.counts() == {"sold": 1}

    def test_save_without_session(self, inventory):
        with pytest.raises(ValueError):
            inventory.save_for_session()
