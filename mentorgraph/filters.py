"""
Viewer-side network filters.

One explicit configuration object replaces ad hoc optional parameters.
Each field has a single matching rule; unset fields never filter.

    skill           posting skill contains the value (case-insensitive)
    seniority       author seniority equals the value (case-insensitive)
    name_search     author display name contains the value (case-insensitive)
    role            "mentor": offers whose author lists mentor roles, or any
                    offer when the author has no profile roles recorded;
                    "learner": the same for asks and learner roles
    min_reputation  author reputation score >= value
    min_sessions    author completed sessions >= value
    rating_range    (low, high) inclusive bounds on author average rating
    ttl_bucket      posting's remaining-time bucket equals the value

Profile-based rules reject postings whose author has no profile.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .constants import TTL_BUCKETS, TTL_BUCKET_EXPIRED, TTL_BUCKET_OPEN_ENDED
from .expiry import ttl_bucket
from .models import Posting, PostingKind, Profile
from .normalize import contains_ci

ROLES = ("mentor", "learner")
TTL_BUCKET_NAMES = (TTL_BUCKET_EXPIRED,) + tuple(name for name, _ in TTL_BUCKETS) + (TTL_BUCKET_OPEN_ENDED,)


@dataclass(frozen=True)
class NetworkFilter:
    skill: Optional[str] = None
    seniority: Optional[str] = None
    name_search: Optional[str] = None
    role: Optional[str] = None
    min_reputation: Optional[float] = None
    min_sessions: Optional[int] = None
    rating_range: Optional[tuple[float, float]] = None
    ttl_bucket: Optional[str] = None

    def __post_init__(self):
        if self.role is not None and self.role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {self.role!r}")
        if self.ttl_bucket is not None and self.ttl_bucket not in TTL_BUCKET_NAMES:
            raise ValueError(f"ttl_bucket must be one of {TTL_BUCKET_NAMES}, got {self.ttl_bucket!r}")
        if self.rating_range is not None:
            low, high = self.rating_range
            if low > high:
                raise ValueError(f"rating_range low bound {low} exceeds high bound {high}")

    @property
    def needs_profile(self) -> bool:
        return any(
            v is not None
            for v in (self.seniority, self.name_search, self.min_reputation,
                      self.min_sessions, self.rating_range)
        )

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (
            self.skill, self.seniority, self.name_search, self.role,
            self.min_reputation, self.min_sessions, self.rating_range, self.ttl_bucket,
        ))

    def store_params(self, space_id: Optional[str] = None) -> dict:
        """Query parameters the entity store can apply server-side."""
        params = {}
        if self.skill:
            params["skill"] = self.skill
        if self.seniority:
            params["seniority"] = self.seniority
        if space_id:
            params["spaceId"] = space_id
        return params

    def _profile_matches(self, profile: Profile) -> bool:
        if self.seniority is not None and profile.seniority.lower() != self.seniority.lower():
            return False
        if self.name_search is not None and not contains_ci(profile.display_name, self.name_search):
            return False
        if self.min_reputation is not None and profile.reputation_score < self.min_reputation:
            return False
        if self.min_sessions is not None and profile.sessions_completed < self.min_sessions:
            return False
        if self.rating_range is not None:
            if profile.average_rating is None:
                return False
            low, high = self.rating_range
            if not low <= profile.average_rating <= high:
                return False
        return True

    def _role_matches(self, posting: Posting, profile: Optional[Profile]) -> bool:
        if self.role == "mentor":
            kind, roles = PostingKind.OFFER, profile.mentor_roles if profile else ()
        else:
            kind, roles = PostingKind.ASK, profile.learner_roles if profile else ()
        if posting.kind != kind:
            return False
        has_any_roles = profile is not None and bool(profile.mentor_roles or profile.learner_roles)
        return not has_any_roles or bool(roles)

    def matches(self, posting: Posting, profile: Optional[Profile], now: int) -> bool:
        if self.skill is not None and not contains_ci(posting.skill, self.skill):
            return False
        if self.ttl_bucket is not None and ttl_bucket(posting, now) != self.ttl_bucket:
            return False
        if self.role is not None and not self._role_matches(posting, profile):
            return False
        if self.needs_profile:
            if profile is None or not self._profile_matches(profile):
                return False
        return True

    def apply(
        self, postings: Iterable[Posting], profiles: Iterable[Profile], now: int
    ) -> list[Posting]:
        """Postings that pass every set rule, in their original order."""
        if self.is_empty:
            return list(postings)
        by_wallet = {p.wallet: p for p in profiles}
        return [p for p in postings if self.matches(p, by_wallet.get(p.wallet), now)]
