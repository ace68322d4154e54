"""
Tests for viewer-side network filters.
"""

import pytest

from mentorgraph.filters import NetworkFilter
from mentorgraph.models import Profile

T0 = 1_700_000_000_000


@pytest.fixture
def profiles():
    return [
        Profile(wallet="0xaaa", display_name="Ada Learner", seniority="junior",
                learner_roles=("student",), reputation_score=20, sessions_completed=1,
                average_rating=3.5),
        Profile(wallet="0xbbb", display_name="Bea Mentor", seniority="Senior",
                mentor_roles=("auditor",), reputation_score=90, sessions_completed=15,
                average_rating=4.8),
    ]


@pytest.fixture
def postings(make_ask, make_offer):
    return [
        make_ask(key="a1", wallet="0xaaa", skill="Solidity"),
        make_ask(key="a2", wallet="0xnobody", skill="design", ttl_seconds=600),
        make_offer(key="o1", wallet="0xbbb", skill="solidity auditing"),
        make_offer(key="o2", wallet="0xaaa", skill="rust", ttl_seconds=8 * 3600),
    ]


def _keys(items):
    return [p.key for p in items]


class TestNetworkFilter:
    """Each rule on its own."""

    def test_empty_filter_keeps_everything(self, postings, profiles):
        """An empty filter returns every posting."""
        assert _keys(NetworkFilter().apply(postings, profiles, T0)) == ["a1", "a2", "o1", "o2"]

    def test_skill_contains(self, postings, profiles):
        """The skill rule is a case-insensitive substring match."""
        result = NetworkFilter(skill="SOLIDITY").apply(postings, profiles, T0)
        assert _keys(result) == ["a1", "o1"]

    def test_seniority(self, postings, profiles):
        """Seniority matches case-insensitively."""
        result = NetworkFilter(seniority="senior").apply(postings, profiles, T0)
        assert _keys(result) == ["o1"]

    def test_name_search(self, postings, profiles):
        """Name search matches part of the display name."""
        result = NetworkFilter(name_search="ada").apply(postings, profiles, T0)
        assert _keys(result) == ["a1", "o2"]

    def test_mentor_role(self, postings, profiles):
        """Offers only; authors with roles on record must list a mentor role."""
        result = NetworkFilter(role="mentor").apply(postings, profiles, T0)
        assert _keys(result) == ["o1"]

    def test_learner_role_allows_unknown_author(self, postings, profiles):
        """The learner role keeps asks whose author has no roles recorded."""
        result = NetworkFilter(role="learner").apply(postings, profiles, T0)
        assert _keys(result) == ["a1", "a2"]

    def test_min_reputation(self, postings, profiles):
        """Reputation below the minimum is dropped."""
        assert _keys(NetworkFilter(min_reputation=50).apply(postings, profiles, T0)) == ["o1"]

    def test_min_sessions(self, postings, profiles):
        """Too few completed sessions are dropped."""
        assert _keys(NetworkFilter(min_sessions=1).apply(postings, profiles, T0)) == ["a1", "o1", "o2"]

    def test_rating_range_inclusive(self, postings, profiles):
        """Rating bounds are inclusive."""
        assert _keys(NetworkFilter(rating_range=(3.5, 4.0)).apply(postings, profiles, T0)) == ["a1", "o2"]

    def test_ttl_bucket(self, postings, profiles):
        """The TTL bucket rule keeps postings in that bucket only."""
        assert _keys(NetworkFilter(ttl_bucket="under_15m").apply(postings, profiles, T0)) == ["a2"]
        assert _keys(NetworkFilter(ttl_bucket="over_6h").apply(postings, profiles, T0)) == ["o2"]

    def test_rules_combine(self, postings, profiles):
        """Every set rule must pass."""
        nf = NetworkFilter(skill="solidity", min_reputation=10, role="learner")
        assert _keys(nf.apply(postings, profiles, T0)) == ["a1"]

    def test_profile_rule_rejects_unknown_author(self, postings):
        """Profile rules drop postings without an author profile."""
        assert NetworkFilter(min_sessions=0).apply(postings, [], T0) == []


class TestFilterConfig:
    """Test validation and store parameters."""

    def test_invalid_role(self):
        """An unknown role is rejected."""
        with pytest.raises(ValueError):
            NetworkFilter(role="coach")

    def test_invalid_bucket(self):
        """An unknown TTL bucket is rejected."""
        with pytest.raises(ValueError):
            NetworkFilter(ttl_bucket="soon")

    def test_inverted_rating_range(self):
        """A low bound above the high bound is rejected."""
        with pytest.raises(ValueError):
            NetworkFilter(rating_range=(4.0, 2.0))

    def test_store_params_only_server_side_fields(self):
        """Only skill, seniority and space go to the store."""
        nf = NetworkFilter(skill="rust", seniority="senior", name_search="bea", min_sessions=3)
        assert nf.store_params("local-dev") == {"skill": "rust", "seniority": "senior", "spaceId": "local-dev"}
        assert NetworkFilter().store_params() == {}
