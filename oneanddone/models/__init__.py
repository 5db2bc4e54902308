"""Database models for the one-and-done pool."""

from oneanddone.models.database import Base, Database, get_db
from oneanddone.models.season import (
    COMMITMENT_PENDING,
    COMMITMENT_SCORED,
    Candidate,
    Commitment,
    Event,
    Reservation,
    SegmentStanding,
)

__all__ = [
    "Base",
    "Database",
    "get_db",
    "COMMITMENT_PENDING",
    "COMMITMENT_SCORED",
    "Candidate",
    "Commitment",
    "Event",
    "Reservation",
    "SegmentStanding",
]
