from pydantic import BaseModel
from typing import List, Dict, Optional, Union

from boxoffice.config import DEFAULT_CHANNEL
from boxoffice.models import SeatStatus


class SeatSchema(BaseModel):
    key: str
    zone: str
    row: Union[int, str]
    seat: int
    price: int
    zone_label: str = ""
    row_label: str = ""
    seat_label: str = ""


class SeatStateSchema(SeatSchema):
    status: SeatStatus
    subject: Optional[str] = None
    channel: Optional[str] = None
    selected: bool = False


class BasketSchema(BaseModel):
    items: List[SeatSchema]
    count: int
    total: int


class ToggleRequest(BaseModel):
    key: str


class ToggleResponse(BaseModel):
    key: str
    selected: bool
    basket: BasketSchema


class SellRequest(BaseModel):
    channel: str = DEFAULT_CHANNEL


class ReserveRequest(BaseModel):
    subject: str = ""


class CommitResponse(BaseModel):
    action: str
    seats: List[SeatSchema]
    count: int
    total: int


class ReservationSchema(BaseModel):
    id: str
    subject: str
    seat_count: int
    seats: List[SeatSchema]
    total: int
    created_at: str


class SeanceSchema(BaseModel):
    id: str
    label: str
    url: str


class SessionSchema(BaseModel):
    id: str
    title: str
    datetime: str
    prices: Dict[str, int]
    counts: Dict[str, int]
