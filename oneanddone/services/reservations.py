"""Reservation planner: tentative, freely revisable week assignments.

A reservation pencils a golfer into a future week. Each week holds at most
one golfer and each golfer sits in at most one week; reserving a golfer
for a taken week evicts whoever was there, and reserving an already
planned golfer moves them.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from oneanddone.config import pool_now_naive
from oneanddone.errors import (
    CandidateAlreadyCommitted,
    CandidateNotFound,
    EventCompleted,
    EventNotFound,
    ReservationConflict,
    StorageError,
    ValidationError,
)
from oneanddone.ev import compute_ev
from oneanddone.models.season import Candidate, Event, Reservation
from oneanddone.services.candidates import CandidateService
from oneanddone.services.events import EventService

logger = logging.getLogger(__name__)


def generate_reservation_id() -> str:
    """Generate a unique reservation ID."""
    return f"rsv_{uuid.uuid4().hex[:16]}"


def _validate_week(week_number) -> int:
    if isinstance(week_number, bool) or not isinstance(week_number, int) or week_number < 1:
        raise ValidationError(f"Week number must be a positive integer, got {week_number!r}")
    return week_number


class ReservationService:
    """Service for planning future picks."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.candidates = CandidateService(db)
        self.events = EventService(db)

    async def get_for_candidate(self, candidate_id: str) -> Optional[Reservation]:
        result = await self.db.execute(
            select(Reservation).where(Reservation.candidate_id == candidate_id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, candidate_id: str, week_number: int) -> Reservation:
        """Reserve a golfer for a week, evicting or moving as needed."""
        week_number = _validate_week(week_number)

        candidate = await self.candidates.get(candidate_id)
        if not candidate:
            raise CandidateNotFound(candidate_id)
        if candidate.is_committed:
            raise CandidateAlreadyCommitted(candidate.name, candidate.committed_week)

        event = await self.events.get_by_week(week_number)
        if not event:
            raise EventNotFound(f"week {week_number}")
        if event.is_completed:
            raise EventCompleted(event.name)

        try:
            # Serializes with a concurrent commit of the same golfer
            if not await self.candidates.claim_for_planning(candidate_id):
                await self.db.rollback()
                await self.db.refresh(candidate)
                raise CandidateAlreadyCommitted(candidate.name, candidate.committed_week)

            # Last writer for a week wins
            evicted = await self.db.execute(
                delete(Reservation)
                .where(Reservation.week_number == week_number)
                .where(Reservation.candidate_id != candidate_id)
            )
            if evicted.rowcount:
                logger.info(f"Week {week_number}: evicted previous reservation for {candidate.name}")

            reservation = await self.get_for_candidate(candidate_id)
            if reservation:
                if reservation.week_number != week_number:
                    logger.info(
                        f"Moving {candidate.name} from week {reservation.week_number} to week {week_number}"
                    )
                reservation.week_number = week_number
                reservation.updated_at = pool_now_naive()
            else:
                reservation = Reservation(
                    id=generate_reservation_id(),
                    candidate_id=candidate_id,
                    candidate_name=candidate.name,
                    week_number=week_number,
                    updated_at=pool_now_naive(),
                )
                self.db.add(reservation)

            await self.db.flush()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Reservation race on week {week_number}: {e}")
            raise ReservationConflict(week_number)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Reservation write failed: {e}")
            raise StorageError("Failed to save reservation", str(e))

        await self.db.refresh(reservation)
        logger.info(f"{candidate.name} reserved for week {week_number} ({event.name})")
        return reservation

    async def clear(self, candidate_id: Optional[str] = None, week_number: Optional[int] = None) -> int:
        """Delete the reservation for a golfer or for a week.

        Exactly one selector must be given. Returns rows deleted.
        """
        if (candidate_id is None) == (week_number is None):
            raise ValidationError("Provide exactly one of candidate_id or week_number")

        stmt = delete(Reservation)
        if candidate_id is not None:
            stmt = stmt.where(Reservation.candidate_id == candidate_id)
        else:
            stmt = stmt.where(Reservation.week_number == _validate_week(week_number))

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Reservation delete failed: {e}")
            raise StorageError("Failed to clear reservation", str(e))

        return result.rowcount or 0

    async def list_reservations(self) -> list[dict]:
        """Reservations with their event and projected value, by week."""
        result = await self.db.execute(
            select(Reservation, Event, Candidate)
            .select_from(Reservation)
            .outerjoin(Event, Event.week_number == Reservation.week_number)
            .outerjoin(Candidate, Candidate.id == Reservation.candidate_id)
            .order_by(Reservation.week_number)
        )

        rows = []
        for reservation, event, candidate in result.all():
            data = reservation.to_dict()
            data["tier"] = candidate.tier if candidate else None
            if event is not None:
                data.update({
                    "event_id": event.id,
                    "event_name": event.name,
                    "purse": event.purse,
                    "multiplier": event.multiplier,
                    "segment": event.segment,
                    "event_type": event.event_type,
                    "start_date": event.start_date.isoformat(),
                })
                if candidate is not None:
                    data["expected_value"] = round(
                        compute_ev(candidate.tier, event.purse, event.multiplier), 2
                    )
            rows.append(data)
        return rows
