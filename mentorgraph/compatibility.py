"""
Compatibility scoring between one ask and one offer.

Responsibilities:
- Compute a deterministic match score in [0, 1] for an (ask, offer) pair.
- Emit a score breakdown and explanation.

Non-Responsibilities:
- No threshold decisions (the graph builder owns the threshold).
- No mutation of postings; a match is never "accepted" here.

Invariant:
Given identical inputs, this module always returns the same score and
explanation. Callers pass arguments as (ask, offer); symmetry of the
score under swapped arguments is not promised.
"""

from dataclasses import dataclass, field

from .constants import (
    MS_PER_MINUTE,
    RECENCY_CLOSE_MINUTES,
    RECENCY_FIT_CLOSE,
    RECENCY_FIT_NEAR,
    RECENCY_NEAR_MINUTES,
    SKILL_CONTAINS_FIT,
    SKILL_EQUAL_FIT,
    TIME_FIT_FULL_MINUTES,
    TIME_FIT_MAX,
)
from .expiry import remaining_minutes
from .models import Posting


@dataclass(frozen=True)
class MatchBreakdown:
    """Per-term contribution to a match score."""
    skill_fit: float = 0.0
    time_fit: float = 0.0
    recency_fit: float = 0.0
    explanation: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total(self) -> float:
        return min(1.0, self.skill_fit + self.time_fit + self.recency_fit)

    def to_dict(self) -> dict:
        return {
            "skill_fit": round(self.skill_fit, 3),
            "time_fit": round(self.time_fit, 3),
            "recency_fit": round(self.recency_fit, 3),
            "total": round(self.total, 3),
            "explanation": list(self.explanation),
        }


def _ineligible_reason(ask: Posting, offer: Posting) -> str | None:
    if ask.kind == offer.kind:
        return f"both postings are {ask.kind.value}s"
    if ask.wallet == offer.wallet:
        return "same wallet on both sides"
    if ask.space_id != offer.space_id:
        return f"different spaces ({ask.space_id} vs {offer.space_id})"
    return None


def skill_fit(ask_skill: str, offer_skill: str) -> float:
    a = ask_skill.lower()
    o = offer_skill.lower()
    if a == o:
        return SKILL_EQUAL_FIT
    if a in o or o in a:
        return SKILL_CONTAINS_FIT
    return 0.0


def time_fit(ask: Posting, offer: Posting, now: int) -> float:
    """Mutual remaining availability; 60+ shared minutes max this out."""
    overlap = min(remaining_minutes(ask, now), remaining_minutes(offer, now))
    return min(TIME_FIT_MAX, (overlap / TIME_FIT_FULL_MINUTES) * TIME_FIT_MAX)


def recency_fit(ask: Posting, offer: Posting) -> float:
    age_diff_min = abs(ask.created_at - offer.created_at) / MS_PER_MINUTE
    if age_diff_min < RECENCY_CLOSE_MINUTES:
        return RECENCY_FIT_CLOSE
    if age_diff_min < RECENCY_NEAR_MINUTES:
        return RECENCY_FIT_NEAR
    return 0.0


def match_breakdown(ask: Posting, offer: Posting, now: int) -> MatchBreakdown:
    """
    Score an ask against an offer term by term.

    Args:
        ask: The ask side
        offer: The offer side
        now: Current time in epoch milliseconds (drives the time term)

    Returns:
        MatchBreakdown; all terms zero when the pair is ineligible
    """
    reason = _ineligible_reason(ask, offer)
    if reason is not None:
        return MatchBreakdown(explanation=(f"no match: {reason}",))

    s = skill_fit(ask.skill, offer.skill)
    t = time_fit(ask, offer, now)
    r = recency_fit(ask, offer)

    explanation = []
    if s == SKILL_EQUAL_FIT:
        explanation.append(f"skill: '{ask.skill}' equals '{offer.skill}'")
    elif s > 0:
        explanation.append(f"skill: '{ask.skill}' overlaps '{offer.skill}'")
    else:
        explanation.append("skill: no overlap")
    explanation.append(f"time: {t:.2f} of {TIME_FIT_MAX} from shared remaining time")
    explanation.append(f"recency: {r:.1f} from creation gap")

    return MatchBreakdown(skill_fit=s, time_fit=t, recency_fit=r, explanation=tuple(explanation))


def match_score(ask: Posting, offer: Posting, now: int) -> float:
    """Compatibility of an (ask, offer) pair in [0, 1]."""
    return match_breakdown(ask, offer, now).total
