import logging
from typing import List

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import Principal, require_admin
from conflicts import Slot, has_conflict, parse_hour_window, ranges_overlap
from errors import NotFoundError, ValidationError
from models import DEFAULT_DAYS, DEFAULT_HOURS, Booking, BookingStatus, Place, utcnow
from schemas import PlaceCreate, PlaceFilter, PlaceUpdate

logger = logging.getLogger(__name__)


class PlaceRegistry:
    """Places and their availability policies. Writes are admin-only."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, place_id: int, *, for_update: bool = False) -> Place:
        statement = select(Place).where(Place.id == place_id, Place.deleted_at.is_(None))
        if for_update:
            statement = statement.with_for_update()
        result = await self.session.execute(statement)
        place = result.scalars().first()
        if place is None:
            raise NotFoundError("Place not found.")
        return place

    async def list(self) -> List[Place]:
        statement = select(Place).where(Place.deleted_at.is_(None)).order_by(Place.id)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def create(self, principal: Principal, data: PlaceCreate) -> Place:
        require_admin(principal, "create")
        place = Place(
            name=data.name,
            description=data.description,
            images=list(data.images),
            capacity=data.capacity,
            available_from=data.available_from,
            available_to=data.available_to,
            type=data.type,
            default_days=[day.value for day in data.default_days] if data.default_days else list(DEFAULT_DAYS),
            default_hours=data.default_hours or DEFAULT_HOURS,
        )
        self.session.add(place)
        await self.session.commit()
        await self.session.refresh(place)
        logger.info("Place %s created by user %s", place.id, principal.user_id)
        return place

    async def update(self, principal: Principal, place_id: int, patch: PlaceUpdate) -> Place:
        require_admin(principal, "update")
        place = await self.get(place_id)
        changes = patch.model_dump(exclude_unset=True)

        # New images are appended to the stored ones
        new_images = changes.pop("images", None) or []
        if changes.get("default_days") is not None:
            # An empty list falls back to the default week, as on create
            changes["default_days"] = [day.value for day in patch.default_days] or list(DEFAULT_DAYS)
        for key, value in changes.items():
            if value is None and key not in ("available_from", "available_to"):
                continue
            setattr(place, key, value)
        if new_images:
            place.images = list(place.images or []) + list(new_images)

        self._check(place)
        place.updated_at = utcnow()
        self.session.add(place)
        await self.session.commit()
        await self.session.refresh(place)
        logger.info("Place %s updated by user %s", place.id, principal.user_id)
        return place

    async def soft_delete(self, principal: Principal, place_id: int) -> None:
        require_admin(principal, "delete")
        place = await self.get(place_id)
        place.deleted_at = utcnow()
        place.active = False
        self.session.add(place)
        await self.session.commit()
        logger.info("Place %s deleted by user %s", place_id, principal.user_id)

    async def filter(self, criteria: PlaceFilter) -> List[Place]:
        statement = select(Place).where(Place.deleted_at.is_(None))
        if criteria.type is not None:
            statement = statement.where(Place.type == criteria.type)
        if criteria.capacity is not None:
            statement = statement.where(Place.capacity >= criteria.capacity)
        result = await self.session.execute(statement.order_by(Place.id))
        places = list(result.scalars().all())

        if criteria.start_date is None or criteria.end_date is None or not places:
            return places

        bookings = await self._booked_between(
            [place.id for place in places], criteria.start_date, criteria.end_date
        )
        by_place = {}
        for booking in bookings:
            by_place.setdefault(booking.place_id, []).append(booking)

        if criteria.start_time is not None and criteria.end_time is not None:
            wanted = Slot(criteria.start_date, criteria.end_date, criteria.start_time, criteria.end_time)
            return [place for place in places if not has_conflict(wanted, by_place.get(place.id, []))]

        return [
            place
            for place in places
            if not any(
                ranges_overlap(criteria.start_date, criteria.end_date, b.start_date, b.end_date)
                for b in by_place.get(place.id, [])
            )
        ]

    async def booked_schedule(self, place_id: int) -> List[Booking]:
        await self.get(place_id)
        statement = (
            select(Booking)
            .where(Booking.place_id == place_id, Booking.status == BookingStatus.BOOKED)
            .order_by(Booking.start_date, Booking.start_time)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def _booked_between(self, place_ids: List[int], start, end) -> List[Booking]:
        statement = select(Booking).where(
            Booking.place_id.in_(place_ids),
            Booking.status == BookingStatus.BOOKED,
            Booking.start_date <= end,
            Booking.end_date >= start,
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    @staticmethod
    def _check(place: Place) -> None:
        errors = {}
        if place.capacity is None or place.capacity < 1:
            errors["capacity"] = "The capacity must be at least 1."
        if place.available_from and place.available_to and place.available_to < place.available_from:
            errors["available_to"] = "The available to must be a date after or equal to available from."
        try:
            parse_hour_window(place.default_hours)
        except ValueError as exc:
            errors["default_hours"] = str(exc)
        if errors:
            raise ValidationError(data=errors)

