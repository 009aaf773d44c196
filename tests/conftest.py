import pytest
from httpx import ASGITransport, AsyncClient

from auth import ADMIN_ROLE, Principal
from config import Settings
from conflicts import WEEKDAY_NAMES
from database import init_db
from main import create_app
from models import Place
from schemas import BookingCreate

ADMIN_HEADERS = {"X-User-Id": "1", "X-User-Roles": "admin"}
USER_HEADERS = {"X-User-Id": "2", "X-User-Roles": "user"}
OTHER_HEADERS = {"X-User-Id": "3", "X-User-Roles": "user"}

ADMIN = Principal(user_id=1, roles=frozenset({ADMIN_ROLE}))
USER = Principal(user_id=2)
OTHER = Principal(user_id=3)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")


@pytest.fixture
async def app(settings):
    application = create_app(settings)
    await init_db(application.state.engine)
    yield application
    await application.state.engine.dispose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


@pytest.fixture
def session_factory(app):
    return app.state.session_factory


@pytest.fixture
def service(app):
    return app.state.reservations


async def add_place(session_factory, **overrides) -> Place:
    fields = dict(
        name="Main hall",
        description="Ground floor hall",
        capacity=50,
        default_days=list(WEEKDAY_NAMES),
        default_hours="08:00-20:00",
    )
    fields.update(overrides)
    async with session_factory() as session:
        place = Place(**fields)
        session.add(place)
        await session.commit()
        await session.refresh(place)
        return place


@pytest.fixture
async def place(session_factory):
    return await add_place(session_factory)


def booking_data(place_id, start_date="2024-10-15", end_date=None, start_time="14:00", end_time="16:00", **extra):
    return BookingCreate(
        place_id=place_id,
        start_date=start_date,
        end_date=end_date or start_date,
        start_time=start_time,
        end_time=end_time,
        event_name=extra.get("event_name", "Culture show"),
    )


def booking_payload(place_id, start_date="2024-10-15", end_date=None, start_time="14:00", end_time="16:00"):
    return {
        "place_id": place_id,
        "start_date": start_date,
        "end_date": end_date or start_date,
        "start_time": start_time,
        "end_time": end_time,
        "event_name": "Culture show",
    }
