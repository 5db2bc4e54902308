"""Expected-value estimates for planning which golfer to use where.

A tier-based heuristic: each skill tier has fixed cumulative finish
probabilities, which are split into disjoint outcome bands and priced
against typical payout shares of the effective purse. The numbers rank
golfer/event pairings and feed the planner display. They are never
written to a commitment's earnings.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Optional

from oneanddone.errors import ValidationError

logger = logging.getLogger(__name__)

TIER_ELITE = "Elite"
TIER_1 = "Tier 1"
TIER_2 = "Tier 2"
TIER_3 = "Tier 3"

# Best to worst
TIERS = (TIER_ELITE, TIER_1, TIER_2, TIER_3)


@dataclass(frozen=True)
class TierProbabilities:
    """Cumulative finish probabilities for one tier."""

    win: float
    top_5: float
    top_10: float
    top_20: float
    make_cut: float


TIER_PROBABILITIES = MappingProxyType({
    TIER_ELITE: TierProbabilities(win=0.10, top_5=0.32, top_10=0.48, top_20=0.66, make_cut=0.85),
    TIER_1: TierProbabilities(win=0.04, top_5=0.16, top_10=0.28, top_20=0.46, make_cut=0.75),
    TIER_2: TierProbabilities(win=0.015, top_5=0.07, top_10=0.14, top_20=0.28, make_cut=0.62),
    TIER_3: TierProbabilities(win=0.005, top_5=0.03, top_10=0.07, top_20=0.16, make_cut=0.50),
})

# Assumed share of the effective purse paid in each outcome band
BAND_PAYOUT_SHARES = MappingProxyType({
    "win": 0.18,
    "second": 0.109,
    "top_5": 0.048,
    "top_10": 0.032,
    "top_20": 0.018,
    "made_cut": 0.008,
})

# Fraction of (top-5 minus win) probability treated as a runner-up finish
SECOND_PLACE_SHARE = 0.25


def outcome_bands(probs: TierProbabilities) -> dict[str, float]:
    """Split cumulative probabilities into disjoint outcome bands."""
    second = (probs.top_5 - probs.win) * SECOND_PLACE_SHARE
    return {
        "win": probs.win,
        "second": second,
        "top_5": probs.top_5 - probs.win - second,
        "top_10": probs.top_10 - probs.top_5,
        "top_20": probs.top_20 - probs.top_10,
        "made_cut": probs.make_cut - probs.top_20,
    }


def compute_ev(tier: str, purse: float, multiplier: float = 1.0) -> float:
    """Expected earnings for a golfer of ``tier`` in an event.

    Args:
        tier: One of TIERS
        purse: Nominal event purse in dollars
        multiplier: Pool payout multiplier for the event

    Returns:
        Projected dollars (unrounded).
    """
    probs = TIER_PROBABILITIES.get(tier)
    if probs is None:
        raise ValidationError(f"Unknown tier: {tier}")
    if purse < 0 or multiplier < 0:
        raise ValidationError("Purse and multiplier must not be negative")

    effective_purse = purse * multiplier
    bands = outcome_bands(probs)
    return sum(bands[band] * BAND_PAYOUT_SHARES[band] * effective_purse for band in bands)


@dataclass
class RankedCandidate:
    """A golfer's projected value at one event."""

    rank: int
    candidate_id: str
    name: str
    tier: str
    expected_value: float

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "candidate_id": self.candidate_id,
            "name": self.name,
            "tier": self.tier,
            "expected_value": round(self.expected_value, 2),
        }


def rank_candidates(candidates: Iterable, event, limit: Optional[int] = None) -> list[RankedCandidate]:
    """Rank unused golfers for an event by expected value.

    Ties (same tier) fall back to world ranking, then name.
    """
    pool = [c for c in candidates if c.committed_event_id is None]
    scored = []
    for c in pool:
        try:
            ev = compute_ev(c.tier, event.purse, event.multiplier)
        except ValidationError:
            logger.warning(f"Skipping {c.name}: unknown tier {c.tier!r}")
            continue
        scored.append((ev, c))

    scored.sort(key=lambda item: (-item[0], item[1].rank if item[1].rank is not None else 10_000, item[1].name))
    if limit:
        scored = scored[:limit]

    return [
        RankedCandidate(
            rank=i + 1,
            candidate_id=c.id,
            name=c.name,
            tier=c.tier,
            expected_value=ev,
        )
        for i, (ev, c) in enumerate(scored)
    ]


def tier_guidance(event) -> list[dict]:
    """Per-tier EV for an event, best tier first (weekly tiering display)."""
    return [
        {
            "tier": tier,
            "expected_value": round(compute_ev(tier, event.purse, event.multiplier), 2),
            "win_probability": TIER_PROBABILITIES[tier].win,
            "make_cut_probability": TIER_PROBABILITIES[tier].make_cut,
        }
        for tier in TIERS
    ]
