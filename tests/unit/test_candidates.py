"""Tests for the candidate registry."""

import pytest

from oneanddone.errors import ValidationError
from oneanddone.services.candidates import CandidateService, tier_of
from oneanddone.services.ledger import CommitmentLedger


@pytest.mark.parametrize(
    "rank,tier",
    [
        (1, "Elite"),
        (10, "Elite"),
        (11, "Tier 1"),
        (30, "Tier 1"),
        (31, "Tier 2"),
        (75, "Tier 2"),
        (76, "Tier 3"),
        (400, "Tier 3"),
        (None, "Tier 3"),
        (0, "Tier 3"),
    ],
)
def test_tier_of(rank, tier):
    assert tier_of(rank) == tier


class TestCandidateService:
    async def test_list_alphabetical(self, season):
        candidates = await CandidateService(season).list_candidates()
        names = [c.name for c in candidates]
        assert names == sorted(names)
        assert len(names) == 5

    async def test_available_excludes_used(self, season):
        await CommitmentLedger(season).commit("evt-2", "scheffler")
        available = await CandidateService(season).available()
        assert "scheffler" not in {c.id for c in available}
        assert len(available) == 4

    async def test_mark_committed_only_once(self, season):
        service = CandidateService(season)
        assert await service.mark_committed("kuchar", "evt-2", 2) is True
        assert await service.mark_committed("kuchar", "evt-3", 3) is False
        await season.commit()

        candidate = await service.get("kuchar")
        assert candidate.committed_event_id == "evt-2"
        assert candidate.committed_week == 2


class TestUpsertCandidates:
    async def test_new_candidate_gets_tier_from_rank(self, season):
        service = CandidateService(season)
        await service.upsert_candidates([{"id": "aberg", "name": "Ludvig Aberg", "rank": 6}])
        candidate = await service.get("aberg")
        assert candidate.tier == "Elite"
        assert candidate.committed_event_id is None

    async def test_rerank_updates_tier(self, season):
        service = CandidateService(season)
        await service.upsert_candidates([{"id": "fowler", "name": "Rickie Fowler", "rank": 25}])
        candidate = await service.get("fowler")
        assert candidate.tier == "Tier 1"
        assert candidate.rank == 25

    async def test_sync_keeps_usage(self, season):
        await CommitmentLedger(season).commit("evt-2", "morikawa")
        service = CandidateService(season)
        await service.upsert_candidates([{"id": "morikawa", "name": "Collin Morikawa", "rank": 9}])
        candidate = await service.get("morikawa")
        assert candidate.committed_event_id == "evt-2"
        assert candidate.tier == "Elite"

    async def test_unknown_tier(self, season):
        with pytest.raises(ValidationError):
            await CandidateService(season).upsert_candidates(
                [{"id": "x", "name": "Nobody", "tier": "Legend"}]
            )

    async def test_missing_name(self, season):
        with pytest.raises(ValidationError):
            await CandidateService(season).upsert_candidates([{"id": "x"}])

    async def test_non_numeric_rank(self, season):
        service = CandidateService(season)
        with pytest.raises(ValidationError) as exc:
            await service.upsert_candidates([
                {"id": "aberg", "name": "Ludvig Aberg", "rank": 6},
                {"id": "x", "name": "Nobody", "rank": "n/a"},
            ])
        assert "rank" in str(exc.value)
        assert await service.get("aberg") is None
        assert await service.get("x") is None
