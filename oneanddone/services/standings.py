"""Segment standings: earnings rolled up per segment of the season.

Two views are kept. ``apply`` maintains the stored ``segment_standings``
rows incrementally and is called exactly once per scored commitment, from
inside the ledger's result transaction. ``list_standings`` recomputes the
same totals from the scored commitments on every read, so it is always
correct; the stored rows can be realigned with it via ``rebuild``.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from oneanddone.config import pool_now_naive
from oneanddone.errors import StorageError
from oneanddone.models.season import COMMITMENT_SCORED, Commitment, Event, SegmentStanding

logger = logging.getLogger(__name__)


@dataclass
class StandingRow:
    """Standings for one segment."""

    segment: str
    total_earnings: int
    events_completed: int
    best_finish: Optional[int]
    season_total_earnings: int = 0
    segment_winner_bonus: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class StandingsService:
    """Service for per-segment totals."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def apply(self, segment: str, earnings: int, finish_position: Optional[int]) -> None:
        """Add one scored result to a segment's stored totals. Does not commit.

        A single UPDATE with in-database arithmetic, so concurrent results
        in the same segment can't lose each other's increments. Not
        idempotent: callers must invoke it once per scored commitment.
        """
        if finish_position is not None:
            best = case(
                (SegmentStanding.best_finish.is_(None), finish_position),
                (SegmentStanding.best_finish > finish_position, finish_position),
                else_=SegmentStanding.best_finish,
            )
        else:
            best = SegmentStanding.best_finish

        stmt = (
            update(SegmentStanding)
            .where(SegmentStanding.segment == segment)
            .values(
                total_earnings=SegmentStanding.total_earnings + earnings,
                events_completed=SegmentStanding.events_completed + 1,
                best_finish=best,
                updated_at=pool_now_naive(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount:
            return

        # First result in this segment
        try:
            async with self.db.begin_nested():
                self.db.add(SegmentStanding(
                    segment=segment,
                    total_earnings=earnings,
                    events_completed=1,
                    best_finish=finish_position,
                    segment_winner_bonus=0,
                    updated_at=pool_now_naive(),
                ))
        except IntegrityError:
            # Another writer created the row first
            await self.db.execute(stmt)

    async def stored(self) -> list[SegmentStanding]:
        """The incrementally maintained rows."""
        result = await self.db.execute(
            select(SegmentStanding)
            .order_by(SegmentStanding.segment)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_stored(self, segment: str) -> Optional[SegmentStanding]:
        result = await self.db.execute(
            select(SegmentStanding)
            .where(SegmentStanding.segment == segment)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_standings(self) -> list[StandingRow]:
        """Standings recomputed live from scored commitments, by segment."""
        scored = Commitment.status == COMMITMENT_SCORED
        result = await self.db.execute(
            select(
                Event.segment,
                func.coalesce(func.sum(case((scored, Commitment.earnings), else_=0)), 0).label("total_earnings"),
                func.count(case((scored, 1))).label("events_completed"),
                func.min(case((scored, Commitment.finish_position))).label("best_finish"),
            )
            .select_from(Commitment)
            .join(Event, Event.id == Commitment.event_id)
            .group_by(Event.segment)
            .order_by(Event.segment)
        )
        rows = result.all()

        bonus_result = await self.db.execute(
            select(SegmentStanding.segment, SegmentStanding.segment_winner_bonus)
        )
        bonuses = {segment: bonus or 0 for segment, bonus in bonus_result.all()}
        season_total = sum(int(r.total_earnings or 0) for r in rows)

        standings = {
            r.segment: StandingRow(
                segment=r.segment,
                total_earnings=int(r.total_earnings or 0),
                events_completed=int(r.events_completed or 0),
                best_finish=int(r.best_finish) if r.best_finish is not None else None,
                season_total_earnings=season_total,
                segment_winner_bonus=bonuses.get(r.segment, 0),
            )
            for r in rows
        }
        # Segments awarded a bonus before any pick was made in them
        for segment, bonus in bonuses.items():
            if bonus and segment not in standings:
                standings[segment] = StandingRow(
                    segment=segment,
                    total_earnings=0,
                    events_completed=0,
                    best_finish=None,
                    season_total_earnings=season_total,
                    segment_winner_bonus=bonus,
                )
        return [standings[segment] for segment in sorted(standings)]

    async def rebuild(self) -> list[SegmentStanding]:
        """Rewrite the stored rows from the live aggregate.

        Keeps each segment's winner bonus.
        """
        live = {row.segment: row for row in await self.list_standings()}
        try:
            existing = {s.segment: s for s in await self.stored()}
            for segment, standing in existing.items():
                if segment not in live:
                    # Bonus-only segment with no scored picks
                    standing.total_earnings = 0
                    standing.events_completed = 0
                    standing.best_finish = None
            for segment, row in live.items():
                standing = existing.get(segment)
                if standing is None:
                    standing = SegmentStanding(segment=segment, segment_winner_bonus=0)
                    self.db.add(standing)
                standing.total_earnings = row.total_earnings
                standing.events_completed = row.events_completed
                standing.best_finish = row.best_finish
                standing.updated_at = pool_now_naive()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Standings rebuild failed: {e}")
            raise StorageError("Failed to rebuild standings", str(e))

        logger.info(f"Rebuilt standings for {len(live)} segment(s)")
        return await self.stored()

    async def set_winner_bonus(self, segment: str, bonus: int) -> SegmentStanding:
        """Record the bonus awarded for winning a segment."""
        try:
            standing = await self.get_stored(segment)
            if standing is None:
                standing = SegmentStanding(
                    segment=segment,
                    total_earnings=0,
                    events_completed=0,
                    best_finish=None,
                    segment_winner_bonus=bonus,
                )
                self.db.add(standing)
            else:
                standing.segment_winner_bonus = bonus
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Saving bonus for {segment} failed: {e}")
            raise StorageError(f"Failed to save bonus for {segment}", str(e))
        await self.db.refresh(standing)
        return standing
