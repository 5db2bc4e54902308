"""API endpoints for the one-and-done pool."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from oneanddone.errors import PoolError
from oneanddone.ev import compute_ev, rank_candidates, tier_guidance
from oneanddone.models.database import get_db
from oneanddone.services.candidates import CandidateService
from oneanddone.services.events import EventService
from oneanddone.services.ledger import CommitmentLedger
from oneanddone.services.reservations import ReservationService
from oneanddone.services.standings import StandingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# --- Pydantic Models ---


class EventRecord(BaseModel):
    id: str
    name: str
    week_number: int
    start_date: str  # ISO date
    end_date: str
    purse: int
    segment: str
    multiplier: float = 1.0
    course_name: Optional[str] = None
    event_type: str = "regular"
    is_completed: bool = False
    winner: Optional[str] = None


class CandidateRecord(BaseModel):
    id: str
    name: str
    rank: Optional[int] = None
    tier: Optional[str] = None


class CompleteRequest(BaseModel):
    winner: Optional[str] = None


class ReservationRequest(BaseModel):
    candidate_id: str
    week_number: int


class CommitRequest(BaseModel):
    event_id: str
    candidate_id: str


class ResultRequest(BaseModel):
    commitment_id: str
    finish_position: Optional[int] = None  # None = missed cut / WD
    earnings: Optional[int] = None  # defaults to the payout table
    winner: Optional[str] = None


class BonusRequest(BaseModel):
    bonus: int


def _http_error(e: PoolError) -> HTTPException:
    if e.status_code >= 500:
        logger.error(f"Request failed: {e}")
    return HTTPException(status_code=e.status_code, detail=str(e))


# --- Events ---


@router.get("/schedule")
async def get_schedule(db: AsyncSession = Depends(get_db)):
    """The full season schedule, by week."""
    events = await EventService(db).schedule()
    return [e.to_dict() for e in events]


@router.put("/schedule")
async def load_schedule(records: list[EventRecord], db: AsyncSession = Depends(get_db)):
    """Load or refresh events from the schedule feed."""
    try:
        count = await EventService(db).upsert_events(r.model_dump() for r in records)
    except PoolError as e:
        raise _http_error(e)
    return {"loaded": count}


@router.get("/current-event")
async def get_current_event(db: AsyncSession = Depends(get_db)):
    """The event in progress, or the next one up."""
    try:
        event, status = await EventService(db).current()
    except PoolError as e:
        raise _http_error(e)

    commitment = await CommitmentLedger(db).for_event(event.id)
    return {
        "event": event.to_dict(),
        "status": status,
        "commitment": commitment.to_dict() if commitment else None,
        "tiers": tier_guidance(event),
    }


@router.post("/events/complete-past")
async def complete_past_events(db: AsyncSession = Depends(get_db)):
    """Run the auto-completion sweep now."""
    try:
        count = await EventService(db).complete_past_events()
    except PoolError as e:
        raise _http_error(e)
    return {"completed": count}


@router.post("/events/{event_id}/complete")
async def complete_event(
    event_id: str,
    data: Optional[CompleteRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Mark an event completed, optionally naming the winner."""
    winner = data.winner if data else None
    try:
        event = await EventService(db).mark_completed(event_id, winner)
    except PoolError as e:
        raise _http_error(e)
    return event.to_dict()


@router.get("/events/{event_id}/rankings")
async def get_event_rankings(
    event_id: str,
    limit: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    """Unused golfers ranked by expected value at an event."""
    event = await EventService(db).get(event_id)
    if not event:
        raise HTTPException(status_code=404, detail=f"Event not found: {event_id}")

    candidates = await CandidateService(db).available()
    ranked = rank_candidates(candidates, event, limit=limit)
    return {
        "event": event.to_dict(),
        "rankings": [r.to_dict() for r in ranked],
    }


# --- Candidates ---


@router.get("/candidates")
async def get_candidates(db: AsyncSession = Depends(get_db)):
    candidates = await CandidateService(db).list_candidates()
    return [c.to_dict() for c in candidates]


@router.get("/candidates/available")
async def get_available_candidates(db: AsyncSession = Depends(get_db)):
    """Golfers not yet used this season."""
    candidates = await CandidateService(db).available()
    return [c.to_dict() for c in candidates]


@router.put("/candidates")
async def load_candidates(records: list[CandidateRecord], db: AsyncSession = Depends(get_db)):
    """Load or refresh golfers from the rankings feed."""
    try:
        count = await CandidateService(db).upsert_candidates(r.model_dump() for r in records)
    except PoolError as e:
        raise _http_error(e)
    return {"loaded": count}


# --- Reservations ---


@router.get("/reservations")
async def get_reservations(db: AsyncSession = Depends(get_db)):
    return await ReservationService(db).list_reservations()


@router.post("/reservations")
async def create_reservation(data: ReservationRequest, db: AsyncSession = Depends(get_db)):
    """Plan a golfer for a future week."""
    try:
        reservation = await ReservationService(db).upsert(data.candidate_id, data.week_number)
    except PoolError as e:
        raise _http_error(e)
    return reservation.to_dict()


@router.delete("/reservations")
async def clear_reservation(
    candidate_id: Optional[str] = None,
    week_number: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    """Remove a plan, by golfer or by week."""
    try:
        deleted = await ReservationService(db).clear(candidate_id=candidate_id, week_number=week_number)
    except PoolError as e:
        raise _http_error(e)
    return {"deleted": deleted}


# --- Commitments ---


@router.get("/commitments")
async def get_commitments(db: AsyncSession = Depends(get_db)):
    """Every pick this season with its event, plus the running total."""
    ledger = CommitmentLedger(db)
    commitments = await ledger.list_commitments()
    return {
        "commitments": [c.to_dict(include_event=True) for c in commitments],
        "season_total": await ledger.season_total(),
    }


@router.post("/commitments")
async def create_commitment(data: CommitRequest, db: AsyncSession = Depends(get_db)):
    """Lock in a golfer for an event. Each golfer can be used once."""
    try:
        commitment = await CommitmentLedger(db).commit(data.event_id, data.candidate_id)
    except PoolError as e:
        raise _http_error(e)
    return commitment.to_dict(include_event=True)


@router.post("/results")
async def record_result(data: ResultRequest, db: AsyncSession = Depends(get_db)):
    """Score a pick once its event has finished."""
    try:
        commitment = await CommitmentLedger(db).record_result(
            data.commitment_id,
            data.finish_position,
            earnings=data.earnings,
            winner=data.winner,
        )
    except PoolError as e:
        raise _http_error(e)
    return {
        "earnings": commitment.earnings,
        "commitment": commitment.to_dict(include_event=True),
    }


# --- Standings ---


@router.get("/segment-standings")
async def get_segment_standings(db: AsyncSession = Depends(get_db)):
    rows = await StandingsService(db).list_standings()
    return [r.to_dict() for r in rows]


@router.post("/segment-standings/rebuild")
async def rebuild_segment_standings(db: AsyncSession = Depends(get_db)):
    """Realign the stored totals with the scored picks."""
    try:
        standings = await StandingsService(db).rebuild()
    except PoolError as e:
        raise _http_error(e)
    return [s.to_dict() for s in standings]


@router.post("/segment-standings/{segment}/bonus")
async def set_segment_bonus(segment: str, data: BonusRequest, db: AsyncSession = Depends(get_db)):
    """Record the bonus for winning a segment."""
    if data.bonus < 0:
        raise HTTPException(status_code=400, detail="Bonus must not be negative")
    try:
        standing = await StandingsService(db).set_winner_bonus(segment, data.bonus)
    except PoolError as e:
        raise _http_error(e)
    return standing.to_dict()


# --- Expected value ---


@router.get("/ev")
async def get_expected_value(tier: str, purse: float, multiplier: float = 1.0):
    """Projected earnings for a tier at a given purse."""
    try:
        ev = compute_ev(tier, purse, multiplier)
    except PoolError as e:
        raise _http_error(e)
    return {
        "tier": tier,
        "purse": purse,
        "multiplier": multiplier,
        "expected_value": round(ev, 2),
    }
