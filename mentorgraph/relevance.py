"""
Relevance scoring of a single posting for one viewer.

Scores are only used for ordering. Observed values sit roughly in 0-160:
a skill match is worth 100, freshness up to 50 (decaying 2 per hour),
and postings by someone other than the viewer get 10 more.
"""

from typing import Iterable

from .constants import (
    MS_PER_HOUR,
    NON_SELF_BONUS,
    RECENCY_BONUS_MAX,
    RECENCY_DECAY_PER_HOUR,
    SKILL_MATCH_BONUS,
)
from .models import Posting, ViewerContext
from .normalize import normalize_skill


def skills_equal(a: str, b: str) -> bool:
    """Case-insensitive equality of two skill strings."""
    return normalize_skill(a) == normalize_skill(b)


def skill_overlaps(posting_skill: str, viewer_skills: Iterable[str]) -> bool:
    """
    Symmetric containment test between a posting skill and a viewer's skills.

    True if any viewer skill is a substring of the posting skill or the
    posting skill is a substring of any viewer skill, ignoring case.
    """
    skill = normalize_skill(posting_skill)
    for viewer_skill in viewer_skills:
        v = normalize_skill(viewer_skill)
        if v in skill or skill in v:
            return True
    return False


def recency_bonus(created_at: int, now: int) -> float:
    hours_old = (now - created_at) / MS_PER_HOUR
    return max(0.0, RECENCY_BONUS_MAX - hours_old * RECENCY_DECAY_PER_HOUR)


def relevance_score(posting: Posting, viewer: ViewerContext, now: int) -> float:
    """Sum of skill-match, recency and non-self bonuses. No upper cap."""
    score = 0.0
    if skill_overlaps(posting.skill, viewer.skills):
        score += SKILL_MATCH_BONUS
    score += recency_bonus(posting.created_at, now)
    if posting.wallet != viewer.wallet:
        score += NON_SELF_BONUS
    return score


def rank_postings(
    postings: Iterable[Posting], viewer: ViewerContext, now: int
) -> list[tuple[Posting, float]]:
    """Postings with their scores, most relevant first. Ties keep input order."""
    scored = [(p, relevance_score(p, viewer, now)) for p in postings]
    # sorted() is stable
    return sorted(scored, key=lambda item: item[1], reverse=True)
