"""Pool services."""

from oneanddone.services.events import EventService
from oneanddone.services.candidates import CandidateService, tier_of
from oneanddone.services.reservations import ReservationService
from oneanddone.services.ledger import CommitmentLedger
from oneanddone.services.standings import StandingsService

__all__ = [
    "EventService",
    "CandidateService",
    "ReservationService",
    "CommitmentLedger",
    "StandingsService",
    "tier_of",
]
