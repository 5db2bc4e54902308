"""Commitment ledger: the binding, once-per-season picks and their results.

A golfer moves through four states for a given event:

    absent -> reserved -> committed (pending) -> committed (scored)

``commit`` performs the move into the committed state and ``record_result``
the move into scored. Each runs as a single transaction whose writes are
guarded by unique constraints and conditional updates, so two callers
racing for the same event or the same golfer can never both succeed.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from oneanddone.config import pool_now_naive
from oneanddone.errors import (
    CandidateAlreadyCommitted,
    CandidateNotFound,
    CommitmentNotFound,
    DuplicateCommitment,
    EventCompleted,
    EventNotFound,
    ResultAlreadyRecorded,
    StorageError,
    ValidationError,
)
from oneanddone.models.season import (
    COMMITMENT_PENDING,
    COMMITMENT_SCORED,
    Commitment,
    Event,
    Reservation,
)
from oneanddone.payouts import calculate_earnings
from oneanddone.services.candidates import CandidateService
from oneanddone.services.events import EventService
from oneanddone.services.standings import StandingsService

logger = logging.getLogger(__name__)


def generate_commitment_id() -> str:
    """Generate a unique commitment ID."""
    return f"cmt_{uuid.uuid4().hex[:16]}"


def _validate_finish(finish_position) -> Optional[int]:
    if finish_position is None:
        return None
    if isinstance(finish_position, bool) or not isinstance(finish_position, int) or finish_position < 1:
        raise ValidationError(f"Finish position must be a positive integer or empty, got {finish_position!r}")
    return finish_position


class CommitmentLedger:
    """Service for committing golfers and scoring their results."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventService(db)
        self.candidates = CandidateService(db)
        self.standings = StandingsService(db)

    async def get(self, commitment_id: str) -> Optional[Commitment]:
        """Get a commitment by ID, with its event."""
        result = await self.db.execute(
            select(Commitment)
            .where(Commitment.id == commitment_id)
            .options(selectinload(Commitment.event))
        )
        return result.scalar_one_or_none()

    async def for_event(self, event_id: str) -> Optional[Commitment]:
        """The commitment for an event, if one exists."""
        result = await self.db.execute(
            select(Commitment)
            .where(Commitment.event_id == event_id)
            .options(selectinload(Commitment.event))
        )
        return result.scalar_one_or_none()

    async def commit(self, event_id: str, candidate_id: str) -> Commitment:
        """Permanently assign a golfer to an event.

        Checks run in order: the event exists and is still open, the event
        has no pick yet, the golfer exists and hasn't been used. The
        commitment insert, the golfer's usage mark, and removal of the
        golfer's reservation then succeed or fail together.
        """
        event = await self.events.get(event_id)
        if not event:
            raise EventNotFound(event_id)
        if event.is_completed:
            raise EventCompleted(event.name)

        existing = await self.for_event(event_id)
        if existing:
            raise DuplicateCommitment(event.name, existing.candidate_name)

        candidate = await self.candidates.get(candidate_id)
        if not candidate:
            raise CandidateNotFound(candidate_id)
        if candidate.is_committed:
            raise CandidateAlreadyCommitted(candidate.name, candidate.committed_week)

        # Rollback expires loaded rows, so keep what the error paths need
        event_name, week = event.name, event.week_number
        candidate_name = candidate.name

        commitment = Commitment(
            id=generate_commitment_id(),
            event_id=event.id,
            candidate_id=candidate.id,
            candidate_name=candidate.name,
            status=COMMITMENT_PENDING,
            finish_position=None,
            earnings=0,
            committed_at=pool_now_naive(),
        )

        try:
            self.db.add(commitment)
            # Unique constraints on event/candidate surface here
            await self.db.flush()

            if not await self.candidates.mark_committed(candidate_id, event_id, week):
                raise _LostRace()

            await self.db.execute(
                delete(Reservation).where(Reservation.candidate_id == candidate_id)
            )
            await self.db.commit()
        except (IntegrityError, _LostRace) as e:
            await self.db.rollback()
            logger.warning(f"Commit race for {candidate_name} at {event_name}: {e!r}")
            conflict = await self._explain_conflict(event_id, event_name, candidate_id)
            raise conflict
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Commit failed for {candidate_name} at {event_name}: {e}")
            raise StorageError("Failed to save pick", str(e))

        await self.db.refresh(candidate)
        await self.db.refresh(commitment, attribute_names=["event"])
        logger.info(f"Committed {candidate_name} to {event_name} (week {week})")
        return commitment

    async def _explain_conflict(self, event_id: str, event_name: str, candidate_id: str):
        """Work out which invariant a lost race ran into."""
        existing = await self.for_event(event_id)
        if existing:
            return DuplicateCommitment(event_name, existing.candidate_name)
        candidate = await self.candidates.get(candidate_id)
        if candidate is not None:
            await self.db.refresh(candidate)
            if candidate.is_committed:
                return CandidateAlreadyCommitted(candidate.name, candidate.committed_week)
        return DuplicateCommitment(event_name)

    async def record_result(
        self,
        commitment_id: str,
        finish_position: Optional[int],
        earnings: Optional[int] = None,
        winner: Optional[str] = None,
    ) -> Commitment:
        """Score a commitment and roll the result into segment standings.

        ``finish_position`` of None means missed cut or withdrawal (earns 0).
        ``earnings`` defaults to the standard payout for the finish. The
        scored state is terminal: replaying the same finish (and the same
        earnings, when given) is a no-op, anything different is rejected.
        """
        finish_position = _validate_finish(finish_position)
        if earnings is not None and (isinstance(earnings, bool) or not isinstance(earnings, int) or earnings < 0):
            raise ValidationError(f"Earnings must be a non-negative whole number, got {earnings!r}")

        commitment = await self.get(commitment_id)
        if not commitment:
            raise CommitmentNotFound(commitment_id)
        event = commitment.event

        if commitment.is_scored:
            return self._replay(commitment, finish_position, earnings)

        requested_earnings = earnings
        if earnings is None:
            earnings = calculate_earnings(finish_position, event.purse, event.multiplier)

        try:
            result = await self.db.execute(
                update(Commitment)
                .where(Commitment.id == commitment_id)
                .where(Commitment.status == COMMITMENT_PENDING)
                .values(
                    status=COMMITMENT_SCORED,
                    finish_position=finish_position,
                    earnings=earnings,
                    scored_at=pool_now_naive(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise _LostRace()

            await self.standings.apply(event.segment, earnings, finish_position)

            values = {"is_completed": True}
            if winner:
                values["winner"] = winner
            await self.db.execute(
                update(Event)
                .where(Event.id == event.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except _LostRace:
            await self.db.rollback()
            # Someone scored it between our read and write
            await self.db.refresh(commitment)
            return self._replay(commitment, finish_position, requested_earnings)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Recording result for {commitment_id} failed: {e}")
            raise StorageError("Failed to record result", str(e))

        await self.db.refresh(commitment)
        await self.db.refresh(event)
        shown = f"T{finish_position}" if finish_position is not None else "MC/WD"
        logger.info(
            f"{commitment.candidate_name} finished {shown} at {event.name} - earned ${earnings:,}"
        )
        return commitment

    def _replay(self, commitment: Commitment, finish_position: Optional[int], earnings: Optional[int]) -> Commitment:
        """Accept a repeat of the stored result. Omitted earnings match whatever was recorded."""
        same_earnings = earnings is None or commitment.earnings == earnings
        if commitment.finish_position == finish_position and same_earnings:
            logger.debug(f"Result replay for {commitment.id} ignored (unchanged)")
            return commitment
        raise ResultAlreadyRecorded(commitment.id, commitment.finish_position)

    async def list_commitments(self) -> list[Commitment]:
        """All commitments with their events, by week."""
        result = await self.db.execute(
            select(Commitment)
            .join(Event, Event.id == Commitment.event_id)
            .options(selectinload(Commitment.event))
            .order_by(Event.week_number)
        )
        return list(result.scalars().all())

    async def season_total(self) -> int:
        """Total earnings across every commitment."""
        result = await self.db.execute(select(func.coalesce(func.sum(Commitment.earnings), 0)))
        return int(result.scalar() or 0)


class _LostRace(Exception):
    """A guarded update matched no rows because another writer got there first."""
