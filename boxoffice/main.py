from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from boxoffice.box_office import BoxOffice
from boxoffice.config import STATE_DIR, ACTIONS_LOG_FILE
from boxoffice.logger import logger
from boxoffice.logging_service import OperationLog
from boxoffice.models import SeatKey, SeatSnapshot
from boxoffice.schemas import (
    SeatSchema, SeatStateSchema, BasketSchema, ToggleRequest, ToggleResponse, SellRequest,
    ReserveRequest, CommitResponse, ReservationSchema, SeanceSchema, SessionSchema,
)
from boxoffice.seance_client import load_hall, load_seances, load_seance
from boxoffice.storage import JsonFileStorage

app = FastAPI(
    title="Box Office Service",
    docs_url="/docs",
    default_response_class=JSONResponse
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_charset_header(request, call_next):
    response = await call_next(request)
    if response.headers.get("content-type", "").startswith("application/json"):
        response.headers["content-type"] = "application/json; charset=utf-8"
    return response


# Загружаем зал и список сеансов при старте
hall = load_hall()
seances = load_seances()
operation_log = OperationLog(ACTIONS_LOG_FILE)
box_office = BoxOffice(hall, JsonFileStorage(STATE_DIR), operation_log) if hall else None


@app.on_event("startup")
def startup():
    logger.info("Box Office Service started")
    if box_office is not None and box_office.seance is None and seances:
        # по умолчанию первый сеанс
        seance_info = load_seance(seances[0])
        if seance_info:
            box_office.open_session(seance_info)


def get_box_office() -> BoxOffice:
    if box_office is None:
        raise HTTPException(status_code=503, detail="Hall config is not loaded")
    if box_office.seance is None:
        raise HTTPException(status_code=503, detail="No seance opened")
    return box_office


def parse_key(key: str) -> SeatKey:
    try:
        return SeatKey.parse(key)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid seat key: {key}")


def seat_schema(snapshot: SeatSnapshot) -> SeatSchema:
    return SeatSchema(**snapshot.to_dict())


def basket_schema(office: BoxOffice) -> BasketSchema:
    items = office.basket.items()
    return BasketSchema(items=[seat_schema(s) for s in items], count=len(items), total=office.basket.total)


def commit_response(action: str, seats: List[SeatSnapshot]) -> CommitResponse:
    return CommitResponse(
        action=action,
        seats=[seat_schema(s) for s in seats],
        count=len(seats),
        total=sum(s.price for s in seats)
    )


def session_schema(office: BoxOffice) -> SessionSchema:
    return SessionSchema(
        id=office.seance.id,
        title=office.seance.title,
        datetime=office.seance.datetime,
        prices=office.prices,
        counts=office.inventory.counts()
    )


# ----- сеансы -----

@app.get("/seances", response_model=List[SeanceSchema])
def get_seances():
    """Получить список сеансов"""
    logger.info("GET /seances")
    return [SeanceSchema(id=s.id, label=s.label, url=s.url) for s in seances]


@app.get("/session", response_model=SessionSchema)
def get_session():
    """Текущий открытый сеанс"""
    logger.info("GET /session")
    return session_schema(get_box_office())


@app.post("/seances/{seance_id}/open", response_model=SessionSchema)
def open_seance(seance_id: str):
    """Переключиться на другой сеанс"""
    logger.info(f"POST /seances/{seance_id}/open")

    if box_office is None:
        raise HTTPException(status_code=503, detail="Hall config is not loaded")

    seance = next((s for s in seances if s.id == seance_id), None)
    if not seance:
        raise HTTPException(status_code=404, detail="Seance not found")

    seance_info = load_seance(seance)
    if not seance_info:
        raise HTTPException(status_code=502, detail="Seance data is unavailable")

    box_office.open_session(seance_info)
    return session_schema(box_office)


# ----- места -----

@app.get("/seats", response_model=List[SeatStateSchema])
def get_seats():
    """Все места зала со статусами и ценами"""
    logger.info("GET /seats")
    office = get_box_office()
    return [
        SeatStateSchema(
            **item["seat"].to_dict(),
            status=item["status"],
            subject=item["subject"],
            channel=item["channel"],
            selected=item["selected"]
        )
        for item in office.seats()
    ]


@app.get("/seats/{key}", response_model=SeatStateSchema)
def get_seat(key: str):
    logger.info(f"GET /seats/{key}")
    office = get_box_office()
    seat_key = office.hall.canonical(parse_key(key))
    if not office.hall.contains(seat_key):
        raise HTTPException(status_code=404, detail="Seat not found")

    record = office.get_record(seat_key)
    return SeatStateSchema(
        **office.snapshot(seat_key).to_dict(),
        status=office.get_status(seat_key),
        subject=record.subject if record else None,
        channel=record.channel if record else None,
        selected=seat_key in office.basket
    )


# ----- корзина -----

@app.get("/basket", response_model=BasketSchema)
def get_basket():
    logger.info("GET /basket")
    return basket_schema(get_box_office())


@app.post("/basket/toggle", response_model=ToggleResponse)
def toggle_seat(request: ToggleRequest):
    """Выбрать место или снять выбор"""
    logger.info(f"POST /basket/toggle - {request.key}")
    office = get_box_office()
    seat_key = office.hall.canonical(parse_key(request.key))
    if not office.hall.contains(seat_key):
        raise HTTPException(status_code=404, detail="Seat not found")

    office.toggle(seat_key)
    return ToggleResponse(
        key=seat_key.encode(),
        selected=seat_key in office.basket,
        basket=basket_schema(office)
    )


@app.delete("/basket", response_model=BasketSchema)
def clear_basket():
    logger.info("DELETE /basket")
    office = get_box_office()
    office.clear()
    return basket_schema(office)


@app.post("/basket/sell", response_model=CommitResponse)
def sell_basket(request: SellRequest):
    """Продать места из корзины"""
    logger.info(f"POST /basket/sell - channel {request.channel}")
    office = get_box_office()
    return commit_response("sell", office.commit_sell(request.channel))


@app.post("/basket/reserve", response_model=CommitResponse)
def reserve_basket(request: ReserveRequest):
    """Поставить места из корзины на бронь"""
    logger.info(f"POST /basket/reserve - {request.subject}")
    office = get_box_office()
    if not request.subject.strip():
        raise HTTPException(status_code=400, detail="Reservation subject is required")
    return commit_response("reserve", office.commit_reserve(request.subject))


@app.post("/basket/unreserve", response_model=CommitResponse)
def unreserve_basket():
    """Снять бронь с мест из корзины"""
    logger.info("POST /basket/unreserve")
    office = get_box_office()
    return commit_response("unreserve", office.commit_unreserve())


# ----- брони -----

@app.get("/reservations", response_model=List[ReservationSchema])
def get_reservations():
    logger.info("GET /reservations")
    office = get_box_office()
    return [
        ReservationSchema(
            id=r.id,
            subject=r.subject,
            seat_count=len(r.seats),
            seats=[seat_schema(s) for s in r.seats],
            total=r.total,
            created_at=r.created_at
        )
        for r in office.list_reservations()
    ]


@app.post("/reservations/{ref}/sell", response_model=CommitResponse)
def sell_reservation(ref: str, request: Optional[SellRequest] = None):
    """Продать всю бронь"""
    logger.info(f"POST /reservations/{ref}/sell")
    office = get_box_office()
    if office.registry.find(ref) is None:
        raise HTTPException(status_code=404, detail="Reservation not found")
    channel = request.channel if request else None
    return commit_response("sell", office.sell_reservation(ref, channel))


@app.post("/reservations/{ref}/cancel", response_model=CommitResponse)
def cancel_reservation(ref: str):
    """Снять всю бронь"""
    logger.info(f"POST /reservations/{ref}/cancel")
    office = get_box_office()
    if office.registry.find(ref) is None:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return commit_response("unreserve", office.cancel_reservation(ref))


# ----- мониторинг -----

@app.get("/api/monitoring/metrics")
def get_monitoring_metrics():
    """Метрики по журналу операций текущего сеанса"""
    logger.info("GET /api/monitoring/metrics")
    session_id = box_office.session_id if box_office else None
    return operation_log.metrics(session_id=session_id)


@app.get("/api/monitoring/user-actions")
def get_user_actions_logs(limit: int = 100):
    """Получить журнал операций кассы"""
    logger.info("GET /api/monitoring/user-actions")
    logs = operation_log.get_logs(limit)
    return {
        "logs": logs,
        "total_lines": len(logs),
        "timestamp": datetime.now().isoformat()
    }


@app.delete("/api/monitoring/user-actions/clear")
def clear_user_logs():
    """Очистка журнала операций"""
    logger.info("DELETE /api/monitoring/user-actions/clear")
    if operation_log.clear():
        return {"status": "ok", "message": "Журнал очищен"}
    return {"status": "ok", "message": "Файл журнала не найден"}
