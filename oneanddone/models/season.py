"""Models for a one-and-done season: events, golfers, picks, plans, standings."""

from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Date, DateTime, Float, ForeignKey, Index, Integer, String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from oneanddone.config import pool_now_naive
from oneanddone.models.database import Base

COMMITMENT_PENDING = "pending"
COMMITMENT_SCORED = "scored"


class Event(Base):
    """A weekly tournament on the season schedule."""

    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("week_number", name="uq_events_week_number"),
        Index("ix_events_start_date", "start_date"),
        Index("ix_events_segment", "segment"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    course_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    week_number: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    purse: Mapped[int] = mapped_column(Integer)  # dollars
    multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    segment: Mapped[str] = mapped_column(String(50))
    event_type: Mapped[str] = mapped_column(String(30), default="regular")  # regular | signature | major
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    winner: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=pool_now_naive)

    commitment: Mapped[Optional["Commitment"]] = relationship(
        "Commitment", back_populates="event", uselist=False
    )

    @property
    def effective_purse(self) -> float:
        return self.purse * self.multiplier

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "course_name": self.course_name,
            "week_number": self.week_number,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "purse": self.purse,
            "multiplier": self.multiplier,
            "segment": self.segment,
            "event_type": self.event_type,
            "is_completed": self.is_completed,
            "winner": self.winner,
        }


class Candidate(Base):
    """A golfer who can be picked once per season."""

    __tablename__ = "candidates"
    __table_args__ = (
        Index("ix_candidates_name", "name"),
        Index("ix_candidates_committed_event_id", "committed_event_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    tier: Mapped[str] = mapped_column(String(20))  # Elite | Tier 1 | Tier 2 | Tier 3
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # world ranking
    committed_event_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("events.id"), nullable=True
    )
    committed_week: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Bumped by every guarded write so concurrent plans/picks serialize on this row
    version: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=pool_now_naive, onupdate=pool_now_naive
    )

    @property
    def is_committed(self) -> bool:
        return self.committed_event_id is not None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "tier": self.tier,
            "rank": self.rank,
            "committed_event_id": self.committed_event_id,
            "committed_week": self.committed_week,
        }


class Commitment(Base):
    """The binding pick of one golfer for one event."""

    __tablename__ = "commitments"
    __table_args__ = (
        UniqueConstraint("event_id", name="uq_commitments_event_id"),
        UniqueConstraint("candidate_id", name="uq_commitments_candidate_id"),
        CheckConstraint("earnings >= 0", name="ck_commitments_earnings_non_negative"),
        Index("ix_commitments_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    event_id: Mapped[str] = mapped_column(String(64), ForeignKey("events.id"))
    candidate_id: Mapped[str] = mapped_column(String(64), ForeignKey("candidates.id"))
    candidate_name: Mapped[str] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default=COMMITMENT_PENDING)  # pending | scored
    finish_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # None = MC/WD/unknown
    earnings: Mapped[int] = mapped_column(Integer, default=0)
    committed_at: Mapped[datetime] = mapped_column(DateTime, default=pool_now_naive)
    scored_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    event: Mapped["Event"] = relationship("Event", back_populates="commitment", lazy="selectin")

    @property
    def is_scored(self) -> bool:
        return self.status == COMMITMENT_SCORED

    def to_dict(self, include_event: bool = False) -> dict:
        """Convert to dictionary."""
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "candidate_id": self.candidate_id,
            "candidate_name": self.candidate_name,
            "status": self.status,
            "finish_position": self.finish_position,
            "earnings": self.earnings,
            "committed_at": self.committed_at.isoformat() if self.committed_at else None,
            "scored_at": self.scored_at.isoformat() if self.scored_at else None,
        }
        if include_event and self.event is not None:
            data.update({
                "event_name": self.event.name,
                "week_number": self.event.week_number,
                "start_date": self.event.start_date.isoformat(),
                "purse": self.event.purse,
                "multiplier": self.event.multiplier,
                "segment": self.event.segment,
            })
        return data


class Reservation(Base):
    """A non-binding plan to use a golfer in a future week."""

    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("candidate_id", name="uq_reservations_candidate_id"),
        UniqueConstraint("week_number", name="uq_reservations_week_number"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    candidate_id: Mapped[str] = mapped_column(String(64), ForeignKey("candidates.id"))
    candidate_name: Mapped[str] = mapped_column(String(100))
    week_number: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=pool_now_naive, onupdate=pool_now_naive
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "candidate_id": self.candidate_id,
            "candidate_name": self.candidate_name,
            "week_number": self.week_number,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class SegmentStanding(Base):
    """Running totals for one segment of the season."""

    __tablename__ = "segment_standings"

    segment: Mapped[str] = mapped_column(String(50), primary_key=True)
    total_earnings: Mapped[int] = mapped_column(Integer, default=0)
    events_completed: Mapped[int] = mapped_column(Integer, default=0)
    best_finish: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    segment_winner_bonus: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=pool_now_naive, onupdate=pool_now_naive
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "segment": self.segment,
            "total_earnings": self.total_earnings,
            "events_completed": self.events_completed,
            "best_finish": self.best_finish,
            "segment_winner_bonus": self.segment_winner_bonus,
        }
