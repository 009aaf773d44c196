import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, time
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from auth import Principal, get_principal
from config import Settings, load_settings
from database import build_engine, build_session_factory, get_session, init_db
from errors import BookingError
from logging_context import configure_logging, reset_request_id, set_request_id
from models import PlaceType
from registry import PlaceRegistry
from schemas import (
    BookedSlot,
    BookingCreate,
    BookingPatch,
    BookingRead,
    Envelope,
    PlaceCreate,
    PlaceFilter,
    PlaceRead,
    PlaceUpdate,
)
from service import ReservationService

logger = logging.getLogger(__name__)


def send_response(data: Any, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    body = Envelope(success=True, data=data, message=message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def send_error(message: str, data: Any = None, status_code: int = 404) -> JSONResponse:
    body = {"success": False, "message": message}
    if data:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def get_reservations(request: Request) -> ReservationService:
    return request.app.state.reservations


def _place_out(place) -> dict:
    return PlaceRead.model_validate(place).model_dump()


def _booking_out(booking) -> dict:
    return BookingRead.model_validate(booking).model_dump()


# --- Places ---

places_router = APIRouter(tags=["places"])


@places_router.get("/places")
async def list_places(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    places = await PlaceRegistry(session).list()
    if not places:
        return send_response({"places": []}, "No places found.")
    return send_response({"places": [_place_out(p) for p in places]}, "Places obtained successfully.")


@places_router.post("/places", status_code=status.HTTP_201_CREATED)
async def create_place(
    data: PlaceCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    place = await PlaceRegistry(session).create(principal, data)
    return send_response({"place": _place_out(place)}, "Place created successfully.", status.HTTP_201_CREATED)


@places_router.get("/places/{place_id}")
async def show_place(
    place_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    place = await PlaceRegistry(session).get(place_id)
    return send_response(
        {
            "place": _place_out(place),
            "availability": {"days": place.default_days, "hours": place.default_hours},
        },
        "Place retrieved successfully.",
    )


@places_router.put("/places/{place_id}")
async def update_place(
    place_id: int,
    patch: PlaceUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    place = await PlaceRegistry(session).update(principal, place_id, patch)
    return send_response({"place": _place_out(place)}, "Place updated successfully.")


@places_router.delete("/places/{place_id}")
async def delete_place(
    place_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await PlaceRegistry(session).soft_delete(principal, place_id)
    return send_response(None, "Place deleted successfully.")


@places_router.get("/filter-places")
async def filter_places(
    type: Optional[PlaceType] = Query(default=None),
    capacity: Optional[int] = Query(default=None, ge=1),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    start_time: Optional[time] = Query(default=None),
    end_time: Optional[time] = Query(default=None),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    criteria = PlaceFilter(
        type=type,
        capacity=capacity,
        start_date=start_date,
        end_date=end_date,
        start_time=start_time,
        end_time=end_time,
    )
    places = await PlaceRegistry(session).filter(criteria)
    return send_response({"places": [_place_out(p) for p in places]}, "Filtered places obtained successfully.")


@places_router.get("/places/{place_id}/booked-schedule")
async def booked_schedule(
    place_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    bookings = await PlaceRegistry(session).booked_schedule(place_id)
    schedule: List[dict] = [BookedSlot.model_validate(b).model_dump() for b in bookings]
    return send_response({"place_id": place_id, "schedule": schedule}, "Booked schedule.")


# --- Bookings ---

bookings_router = APIRouter(tags=["bookings"])


@bookings_router.get("/bookings")
async def list_bookings(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    reservations: ReservationService = Depends(get_reservations),
):
    bookings = await reservations.list(session, principal)
    return send_response({"bookings": [_booking_out(b) for b in bookings]}, "Bookings retrieved successfully.")


@bookings_router.post("/bookings", status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    reservations: ReservationService = Depends(get_reservations),
):
    booking = await reservations.create(session, principal, data)
    return send_response({"booking": _booking_out(booking)}, "Booking created successfully.", status.HTTP_201_CREATED)


@bookings_router.get("/bookings/{booking_id}")
async def show_booking(
    booking_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    reservations: ReservationService = Depends(get_reservations),
):
    booking = await reservations.get(session, principal, booking_id)
    return send_response({"booking": _booking_out(booking)}, "Booking details.")


@bookings_router.put("/bookings/{booking_id}")
async def update_booking(
    booking_id: int,
    patch: BookingPatch,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    reservations: ReservationService = Depends(get_reservations),
):
    booking = await reservations.update(session, principal, booking_id, patch)
    return send_response({"booking": _booking_out(booking)}, "Booking updated successfully.")


@bookings_router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    reservations: ReservationService = Depends(get_reservations),
):
    await reservations.delete(session, principal, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@bookings_router.api_route("/bookings/{booking_id}/cancel", methods=["POST", "PUT"])
async def cancel_booking(
    booking_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    reservations: ReservationService = Depends(get_reservations),
):
    booking = await reservations.cancel(session, principal, booking_id)
    return send_response({"booking": _booking_out(booking)}, "Booking cancelled successfully.")


# --- Application ---

async def handle_booking_error(request: Request, exc: BookingError):
    return send_error(exc.message, exc.data, exc.status_code)


async def handle_request_validation(request: Request, exc: RequestValidationError):
    return send_error("The given data was invalid.", exc.errors(), 422)


async def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return send_error(str(exc) or exc.__class__.__name__, None, status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(engine)
        yield
        await engine.dispose()

    app = FastAPI(title="Space Reservation System", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.reservations = ReservationService(
        enforce_availability=settings.enforce_place_availability
    )

    app.add_exception_handler(BookingError, handle_booking_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    app.include_router(places_router)
    app.include_router(bookings_router)
    return app
