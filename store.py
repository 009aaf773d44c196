from datetime import date
from typing import Any, Dict, List, Optional

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from errors import NotFoundError
from models import Booking, BookingStatus, utcnow


class BookingStore:
    """Persistence for bookings.

    Every write commits before returning, so a conflict check that runs
    afterwards on the same place sees it.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, booking_id: int) -> Optional[Booking]:
        return await self.session.get(Booking, booking_id, populate_existing=True)

    async def get_owned(self, booking_id: int, user_id: int) -> Booking:
        booking = await self.get(booking_id)
        if booking is None or booking.user_id != user_id:
            raise NotFoundError("Booking not found.")
        return booking

    async def list_by_user(self, user_id: int) -> List[Booking]:
        statement = select(Booking).where(Booking.user_id == user_id).order_by(Booking.id)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def list_by_place(self, place_id: int) -> List[Booking]:
        statement = select(Booking).where(Booking.place_id == place_id).order_by(Booking.id)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def list_candidates(
        self,
        place_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> List[Booking]:
        """Booked reservations on ``place_id`` whose dates touch the window."""
        statement = select(Booking).where(
            Booking.place_id == place_id,
            Booking.status == BookingStatus.BOOKED,
            Booking.start_date <= end_date,
            Booking.end_date >= start_date,
        )
        if exclude_id is not None:
            statement = statement.where(Booking.id != exclude_id)
        statement = statement.execution_options(populate_existing=True)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def insert(self, booking: Booking) -> int:
        self.session.add(booking)
        await self.session.commit()
        await self.session.refresh(booking)
        return booking.id

    async def update(self, booking: Booking, fields: Dict[str, Any]) -> Booking:
        for key, value in fields.items():
            setattr(booking, key, value)
        booking.updated_at = utcnow()
        self.session.add(booking)
        await self.session.commit()
        await self.session.refresh(booking)
        return booking

    async def delete(self, booking: Booking) -> None:
        await self.session.delete(booking)
        await self.session.commit()
