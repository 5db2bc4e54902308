"""Candidate registry: golfers, their tiers, and whether they've been used."""

import logging
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from oneanddone.errors import StorageError, ValidationError
from oneanddone.ev import TIER_1, TIER_2, TIER_3, TIER_ELITE, TIERS
from oneanddone.models.season import Candidate

logger = logging.getLogger(__name__)


def tier_of(rank: Optional[int]) -> str:
    """Skill tier for a world ranking. Unranked golfers land in the lowest tier."""
    if rank is None or rank < 1:
        return TIER_3
    if rank <= 10:
        return TIER_ELITE
    if rank <= 30:
        return TIER_1
    if rank <= 75:
        return TIER_2
    return TIER_3


def _as_rank(value, name: str) -> Optional[int]:
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid rank for {name}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid rank for {name}: {value!r}")


class CandidateService:
    """Service for the golfer pool."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, candidate_id: str) -> Optional[Candidate]:
        """Get a candidate by ID."""
        result = await self.db.execute(
            select(Candidate)
            .where(Candidate.id == candidate_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_candidates(self) -> list[Candidate]:
        """All candidates, alphabetical."""
        result = await self.db.execute(select(Candidate).order_by(Candidate.name))
        return list(result.scalars().all())

    async def available(self) -> list[Candidate]:
        """Candidates who haven't been used yet."""
        result = await self.db.execute(
            select(Candidate)
            .where(Candidate.committed_event_id.is_(None))
            .order_by(Candidate.name)
        )
        return list(result.scalars().all())

    async def mark_committed(self, candidate_id: str, event_id: str, week: int) -> bool:
        """Record that a candidate has been used. Does not commit.

        Guarded on the candidate still being unused, so of two concurrent
        callers exactly one sees True. Must run inside the caller's
        transaction alongside the commitment insert.
        """
        result = await self.db.execute(
            update(Candidate)
            .where(Candidate.id == candidate_id)
            .where(Candidate.committed_event_id.is_(None))
            .values(
                committed_event_id=event_id,
                committed_week=week,
                version=Candidate.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def claim_for_planning(self, candidate_id: str) -> bool:
        """Bump the version of a still-unused candidate. Does not commit.

        Reservation writes take this row lock first so they serialize with
        mark_committed on the same golfer.
        """
        result = await self.db.execute(
            update(Candidate)
            .where(Candidate.id == candidate_id)
            .where(Candidate.committed_event_id.is_(None))
            .values(version=Candidate.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def upsert_candidates(self, records: Iterable[dict]) -> int:
        """Load or refresh golfers from ranking records ``{id, name, rank, tier?}``.

        Usage fields are never touched here.
        """
        count = 0
        try:
            for record in records:
                if not record.get("id") or not record.get("name"):
                    raise ValidationError("Candidate record needs an id and a name")
                rank = _as_rank(record.get("rank"), record["name"])
                tier = record.get("tier") or tier_of(rank)
                if tier not in TIERS:
                    raise ValidationError(f"Unknown tier for {record['name']}: {tier}")

                candidate = await self.get(str(record["id"]))
                if candidate is None:
                    candidate = Candidate(id=str(record["id"]), version=0)
                    self.db.add(candidate)
                candidate.name = record["name"]
                candidate.rank = rank
                candidate.tier = tier
                count += 1
            await self.db.commit()
        except ValidationError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Candidate sync failed: {e}")
            raise StorageError("Failed to load candidates", str(e))

        logger.info(f"Synced {count} candidate(s)")
        return count
