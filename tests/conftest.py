import pytest

from boxoffice.box_office import BoxOffice
from boxoffice.hall import HallLayout
from boxoffice.logging_service import OperationLog
from boxoffice.models import SeanceInfo
from boxoffice.storage import MemoryStorage

HALL_DATA = {
    "name": "Test hall",
    "rows": [
        {"zone": "parter", "row": 1, "seats": 10, "aisle_after": 5, "price_group": "A"},
        {"zone": "parter", "row": 2, "seats": 10, "price_group": "A"},
        {"zone": "parter", "row": 5, "seats_left": 5, "seats_right": 5, "price_group": "B"},
        {"zone": "amphi", "row": 6, "seats": 8, "price_group": "C"},
        {"zone": "balcony", "row": 5, "seats": 6, "price_group": "C"},
        {"zone": "balcony", "row": 7, "seats": 4},
    ],
    "boxes": [
        {"id": "lodgeA", "side": "left", "label": "Ложа A", "seats": 4, "price_group": "box"},
        {"id": "boxB", "side": "right", "seats": 2},
    ],
}

PRICES = {"A": 100, "B": 150, "C": 120, "box": 200}

HALL_SEATS = 10 + 10 + 10 + 8 + 6 + 4 + 4 + 2


@pytest.fixture
def hall():
    return HallLayout.from_dict(HALL_DATA)


@pytest.fixture
def seance_info():
    return SeanceInfo(
        id="s1",
        title="Test show",
        datetime="28.12.2025 16:00",
        prices=dict(PRICES),
        places={
            "2-3": {"status": "blocked"},
            "box:lodgeA:4": {"status": "inactive"},
        },
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def operation_log(tmp_path):
    return OperationLog(tmp_path / "user_actions.log")


@pytest.fixture
def office(hall, storage, operation_log, seance_info):
    box_office = BoxOffice(hall, storage, operation_log)
    box_office.open_session(seance_info)
    return box_office
