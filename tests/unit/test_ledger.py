"""Tests for the commitment ledger."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from oneanddone.errors import (
    CandidateAlreadyCommitted,
    CandidateNotFound,
    CommitmentNotFound,
    ConflictError,
    DuplicateCommitment,
    EventCompleted,
    EventNotFound,
    ResultAlreadyRecorded,
    ValidationError,
)
from oneanddone.models import COMMITMENT_PENDING, COMMITMENT_SCORED, Commitment, Event
from oneanddone.services.candidates import CandidateService
from oneanddone.services.events import EventService
from oneanddone.services.ledger import CommitmentLedger
from oneanddone.services.reservations import ReservationService
from oneanddone.services.standings import StandingsService


async def _add_event(db, today, event_id="evt-6", week=6, purse=10_000_000, multiplier=1.5, segment="Spring"):
    start = today + timedelta(days=27)
    db.add(Event(
        id=event_id,
        name="RBC Heritage",
        week_number=week,
        start_date=start,
        end_date=start + timedelta(days=3),
        purse=purse,
        multiplier=multiplier,
        segment=segment,
        event_type="signature",
        is_completed=False,
    ))
    await db.commit()


async def _commitment_count(db) -> int:
    result = await db.execute(select(func.count(Commitment.id)))
    return result.scalar() or 0


class TestCommit:
    async def test_commit_consumes_reservation(self, season):
        await ReservationService(season).upsert("scheffler", 5)

        commitment = await CommitmentLedger(season).commit("evt-5", "scheffler")

        assert commitment.status == COMMITMENT_PENDING
        assert commitment.earnings == 0
        assert commitment.finish_position is None
        assert await ReservationService(season).list_reservations() == []

        candidate = await CandidateService(season).get("scheffler")
        assert candidate.committed_event_id == "evt-5"
        assert candidate.committed_week == 5

    async def test_commit_leaves_other_reservations(self, season):
        await ReservationService(season).upsert("mcilroy", 4)
        await CommitmentLedger(season).commit("evt-2", "kuchar")
        rows = await ReservationService(season).list_reservations()
        assert [r["candidate_id"] for r in rows] == ["mcilroy"]

    async def test_event_already_has_pick(self, season):
        ledger = CommitmentLedger(season)
        await ledger.commit("evt-3", "scheffler")

        with pytest.raises(DuplicateCommitment) as exc:
            await ledger.commit("evt-3", "mcilroy")
        assert "Scottie Scheffler" in str(exc.value)

        mcilroy = await CandidateService(season).get("mcilroy")
        assert mcilroy.committed_event_id is None
        assert await _commitment_count(season) == 1

    async def test_golfer_already_used(self, season):
        ledger = CommitmentLedger(season)
        await ledger.commit("evt-2", "scheffler")

        with pytest.raises(CandidateAlreadyCommitted) as exc:
            await ledger.commit("evt-3", "scheffler")
        assert exc.value.week == 2
        assert "week 2" in str(exc.value)
        assert await ledger.for_event("evt-3") is None

    async def test_completed_event(self, season):
        with pytest.raises(EventCompleted):
            await CommitmentLedger(season).commit("evt-1", "scheffler")

    async def test_unknown_event(self, season):
        with pytest.raises(EventNotFound):
            await CommitmentLedger(season).commit("evt-99", "scheffler")

    async def test_unknown_candidate(self, season):
        with pytest.raises(CandidateNotFound):
            await CommitmentLedger(season).commit("evt-2", "woods")

    async def test_event_checked_before_candidate(self, season):
        ledger = CommitmentLedger(season)
        await ledger.commit("evt-2", "scheffler")
        # Both the event and the golfer are taken; the event is reported
        with pytest.raises(DuplicateCommitment):
            await ledger.commit("evt-2", "scheffler")


class TestRecordResult:
    async def test_scores_and_rolls_into_standings(self, season, today):
        await _add_event(season, today)
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-6", "morikawa")

        scored = await ledger.record_result(commitment.id, 3)

        assert scored.earnings == 1_035_000
        assert scored.finish_position == 3
        assert scored.status == COMMITMENT_SCORED
        assert scored.scored_at is not None

        standing = await StandingsService(season).get_stored("Spring")
        assert standing.events_completed == 1
        assert standing.total_earnings == 1_035_000
        assert standing.best_finish == 3

        event = await EventService(season).get("evt-6")
        assert event.is_completed is True

    async def test_missed_cut(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "fowler")

        scored = await ledger.record_result(commitment.id, None)

        assert scored.earnings == 0
        assert scored.status == COMMITMENT_SCORED
        standing = await StandingsService(season).get_stored("Fall")
        assert standing.events_completed == 1
        assert standing.total_earnings == 0
        assert standing.best_finish is None

    async def test_explicit_earnings_and_winner(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "scheffler")

        scored = await ledger.record_result(commitment.id, 1, earnings=1_600_000, winner="Scottie Scheffler")

        assert scored.earnings == 1_600_000
        event = await EventService(season).get("evt-2")
        assert event.winner == "Scottie Scheffler"

    async def test_identical_replay_is_noop(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "mcilroy")
        await ledger.record_result(commitment.id, 5)

        again = await ledger.record_result(commitment.id, 5)

        assert again.earnings == 360_800
        standing = await StandingsService(season).get_stored("Fall")
        assert standing.events_completed == 1
        assert standing.total_earnings == 360_800

    async def test_different_replay_rejected(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "mcilroy")
        await ledger.record_result(commitment.id, 5)

        with pytest.raises(ResultAlreadyRecorded):
            await ledger.record_result(commitment.id, 1)

        standing = await StandingsService(season).get_stored("Fall")
        assert standing.events_completed == 1
        assert standing.total_earnings == 360_800

    async def test_no_picks_after_result(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "mcilroy")
        await ledger.record_result(commitment.id, 12)

        with pytest.raises(EventCompleted):
            await ledger.commit("evt-2", "kuchar")

    @pytest.mark.parametrize("finish", [0, -3, "3", 2.5])
    async def test_invalid_finish(self, season, finish):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "kuchar")
        with pytest.raises(ValidationError):
            await ledger.record_result(commitment.id, finish)

    async def test_negative_earnings(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "kuchar")
        with pytest.raises(ValidationError):
            await ledger.record_result(commitment.id, 10, earnings=-1)

    async def test_unknown_commitment(self, season):
        with pytest.raises(CommitmentNotFound):
            await CommitmentLedger(season).record_result("cmt_missing", 1)


class TestLedgerViews:
    async def test_list_by_week_with_event(self, season):
        ledger = CommitmentLedger(season)
        await ledger.commit("evt-4", "mcilroy")
        await ledger.commit("evt-2", "scheffler")

        commitments = await ledger.list_commitments()
        assert [c.event_id for c in commitments] == ["evt-2", "evt-4"]

        data = commitments[0].to_dict(include_event=True)
        assert data["event_name"] == "American Express"
        assert data["week_number"] == 2
        assert data["segment"] == "Fall"

    async def test_season_total(self, season):
        ledger = CommitmentLedger(season)
        first = await ledger.commit("evt-2", "scheffler")
        second = await ledger.commit("evt-3", "mcilroy")
        await ledger.commit("evt-4", "kuchar")
        await ledger.record_result(first.id, 1)
        await ledger.record_result(second.id, 2)

        # 8.8M * .18 + 30M * .109
        assert await ledger.season_total() == 1_584_000 + 3_270_000


class TestConcurrentCommits:
    async def test_one_pick_per_event(self, file_db):
        async def attempt(candidate_id):
            async with file_db.session() as db:
                return await CommitmentLedger(db).commit("evt-3", candidate_id)

        results = await asyncio.gather(
            attempt("scheffler"), attempt("mcilroy"), return_exceptions=True
        )

        winners = [r for r in results if isinstance(r, Commitment)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], DuplicateCommitment)

        async with file_db.session() as db:
            assert await _commitment_count(db) == 1
            used = [c for c in await CandidateService(db).list_candidates() if c.is_committed]
            assert [c.id for c in used] == [winners[0].candidate_id]

    async def test_one_event_per_golfer(self, file_db):
        async def attempt(event_id):
            async with file_db.session() as db:
                return await CommitmentLedger(db).commit(event_id, "scheffler")

        results = await asyncio.gather(
            attempt("evt-3"), attempt("evt-4"), return_exceptions=True
        )

        winners = [r for r in results if isinstance(r, Commitment)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], ConflictError)

        async with file_db.session() as db:
            assert await _commitment_count(db) == 1
            candidate = await CandidateService(db).get("scheffler")
            assert candidate.committed_event_id == winners[0].event_id


class TestResultReplayWithoutEarnings:
    async def test_replay_without_earnings_after_override(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "scheffler")
        await ledger.record_result(commitment.id, 1, earnings=1_600_000)

        again = await ledger.record_result(commitment.id, 1)

        assert again.earnings == 1_600_000
        standing = await StandingsService(season).get_stored("Fall")
        assert standing.events_completed == 1
        assert standing.total_earnings == 1_600_000

    async def test_replay_without_earnings_different_finish(self, season):
        ledger = CommitmentLedger(season)
        commitment = await ledger.commit("evt-2", "scheffler")
        await ledger.record_result(commitment.id, 1, earnings=1_600_000)

        with pytest.raises(ResultAlreadyRecorded):
            await ledger.record_result(commitment.id, 2)
