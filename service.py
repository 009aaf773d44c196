"""Reservation service: create, update, cancel and delete bookings.

The read-check-write sequence for a place runs under that place's lock, and
the place row is selected ``FOR UPDATE`` inside it. The in-process lock
serializes requests handled by one worker; the row lock extends the same
guarantee across workers on databases that support it. Locks are per place,
so bookings for different places never wait on each other.
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import Principal
from conflicts import Slot, find_conflict, policy_violations, slot_of
from errors import BookingError, ConflictError, NotFoundError, UnexpectedError, ValidationError
from models import Booking, BookingStatus, Place
from registry import PlaceRegistry
from schemas import BookingCreate, BookingPatch
from store import BookingStore

logger = logging.getLogger(__name__)


class PlaceLocks:
    """One lock per place id, dropped once no request holds or awaits it."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _hold_one(self, place_id: int):
        lock = self._locks.get(place_id)
        if lock is None:
            lock = self._locks[place_id] = asyncio.Lock()
        self._users[place_id] = self._users.get(place_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[place_id] -= 1
            if not self._users[place_id]:
                del self._users[place_id]
                del self._locks[place_id]

    @asynccontextmanager
    async def hold(self, *place_ids: int):
        # Ascending order so two requests spanning the same places cannot deadlock
        async with AsyncExitStack() as stack:
            for place_id in sorted(set(place_ids)):
                await stack.enter_async_context(self._hold_one(place_id))
            yield


class ReservationService:
    def __init__(self, enforce_availability: bool = True):
        self.enforce_availability = enforce_availability
        self.locks = PlaceLocks()

    @asynccontextmanager
    async def _serialized(self, session: AsyncSession, *place_ids: int):
        async with self.locks.hold(*place_ids):
            try:
                yield
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("Storage failure while booking places %s", place_ids)
                raise UnexpectedError(str(exc)) from exc
            except BookingError:
                await session.rollback()
                raise

    async def list(self, session: AsyncSession, principal: Principal) -> List[Booking]:
        return await BookingStore(session).list_by_user(principal.user_id)

    async def get(self, session: AsyncSession, principal: Principal, booking_id: int) -> Booking:
        return await BookingStore(session).get_owned(booking_id, principal.user_id)

    async def create(self, session: AsyncSession, principal: Principal, data: BookingCreate) -> Booking:
        slot = Slot(data.start_date, data.end_date, data.start_time, data.end_time)
        _check_slot(slot)
        store = BookingStore(session)

        async with self._serialized(session, data.place_id):
            place = await self._bookable_place(session, data.place_id)
            self._check_availability(place, slot)

            candidates = await store.list_candidates(place.id, slot.start_date, slot.end_date)
            clash = find_conflict(slot, candidates)
            if clash is not None:
                logger.warning(
                    "Rejected booking for place %s by user %s: overlaps booking %s",
                    place.id, principal.user_id, clash.id,
                )
                raise ConflictError()

            booking = Booking(
                user_id=principal.user_id,
                place_id=place.id,
                start_date=slot.start_date,
                end_date=slot.end_date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                status=BookingStatus.BOOKED,
                event_name=data.event_name,
            )
            await store.insert(booking)

        logger.info("Booking %s created for place %s by user %s", booking.id, booking.place_id, principal.user_id)
        return booking

    async def update(
        self, session: AsyncSession, principal: Principal, booking_id: int, patch: BookingPatch
    ) -> Booking:
        store = BookingStore(session)
        current = await store.get_owned(booking_id, principal.user_id)
        changes = patch.changes()
        locked = {current.place_id, changes.get("place_id", current.place_id)}

        booking = None
        while booking is None:
            async with self._serialized(session, *locked):
                # Re-read under the lock; the record may have moved since
                current = await store.get_owned(booking_id, principal.user_id)
                needed = {current.place_id, changes.get("place_id", current.place_id)}
                if not needed <= locked:
                    locked = needed
                    continue
                booking = await self._apply_update(session, store, principal, current, changes)

        logger.info("Booking %s updated by user %s", booking.id, principal.user_id)
        return booking

    async def _apply_update(
        self, session: AsyncSession, store: BookingStore, principal: Principal, current: Booking, changes: dict
    ) -> Booking:
        target_place_id = changes.get("place_id", current.place_id)
        slot = Slot(
            start_date=changes.get("start_date", current.start_date),
            end_date=changes.get("end_date", current.end_date),
            start_time=changes.get("start_time", current.start_time),
            end_time=changes.get("end_time", current.end_time),
        )
        _check_slot(slot)

        # A booked record that keeps its place and slot is not re-checked against
        # the place, so bookings on a deleted place stay editable by their owner
        moved = target_place_id != current.place_id or slot != slot_of(current)
        if moved or current.status != BookingStatus.BOOKED:
            place = await self._bookable_place(session, target_place_id)
            self._check_availability(place, slot)

        candidates = await store.list_candidates(
            target_place_id, slot.start_date, slot.end_date, exclude_id=current.id
        )
        clash = find_conflict(slot, candidates, exclude_id=current.id)
        if clash is not None:
            logger.warning(
                "Rejected update of booking %s by user %s: overlaps booking %s",
                current.id, principal.user_id, clash.id,
            )
            raise ConflictError()

        return await store.update(current, {**changes, "status": BookingStatus.BOOKED})

    async def cancel(self, session: AsyncSession, principal: Principal, booking_id: int) -> Booking:
        store = BookingStore(session)
        booking = await store.get_owned(booking_id, principal.user_id)
        try:
            booking = await store.update(booking, {"status": BookingStatus.CANCELLED})
        except SQLAlchemyError as exc:
            await session.rollback()
            raise UnexpectedError(str(exc)) from exc
        logger.info("Booking %s cancelled by user %s", booking_id, principal.user_id)
        return booking

    async def delete(self, session: AsyncSession, principal: Principal, booking_id: int) -> None:
        store = BookingStore(session)
        booking = await store.get_owned(booking_id, principal.user_id)
        try:
            await store.delete(booking)
        except SQLAlchemyError as exc:
            await session.rollback()
            raise UnexpectedError(str(exc)) from exc
        logger.info("Booking %s deleted by user %s", booking_id, principal.user_id)

    async def _bookable_place(self, session: AsyncSession, place_id: int) -> Place:
        try:
            place = await PlaceRegistry(session).get(place_id, for_update=True)
        except NotFoundError:
            raise ValidationError(data={"place_id": "The selected place id is invalid."}) from None
        if not place.active:
            raise ValidationError(data={"place_id": "The selected place is not active."})
        return place

    def _check_availability(self, place: Place, slot: Slot) -> None:
        if not self.enforce_availability:
            return
        problems = policy_violations(slot, place.availability_policy())
        if problems:
            raise ValidationError(
                "The place is not available for the selected time.", data={"availability": problems}
            )


def _check_slot(slot: Slot) -> None:
    errors = {}
    if slot.end_date < slot.start_date:
        errors["end_date"] = "The end date must be a date after or equal to start date."
    if slot.end_time <= slot.start_time:
        errors["end_time"] = "The end time must be a time after start time."
    if errors:
        raise ValidationError(data=errors)
