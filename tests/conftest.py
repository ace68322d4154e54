"""
Pytest configuration and shared fixtures.
"""

import pytest
from typing import Dict, Any

from mentorgraph.logger import StructuredLogger, get_logger, reset_logger
from mentorgraph.models import Ask, Offer, ViewerContext

T0 = 1_700_000_000_000  # 2023-11-14T22:13:20Z
MINUTE = 60_000
HOUR = 3_600_000


@pytest.fixture(autouse=True)
def fresh_logger():
    """Each test starts from a fresh, console-free global logger."""
    reset_logger()
    get_logger(enable_console=False)
    yield
    reset_logger()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """Logger with no handlers, for checking metrics."""
    return StructuredLogger(name="mentorgraph-test", enable_console=False)


@pytest.fixture
def make_ask():
    """Factory for asks with sensible defaults."""
    def _make(**overrides) -> Ask:
        fields = dict(
            key="ask-1",
            wallet="0xaaa",
            skill="solidity",
            space_id="local-dev",
            created_at=T0,
            ttl_seconds=3600,
            message="need help",
            status="open",
        )
        fields.update(overrides)
        return Ask(**fields)
    return _make


@pytest.fixture
def make_offer():
    """Factory for offers with sensible defaults."""
    def _make(**overrides) -> Offer:
        fields = dict(
            key="offer-1",
            wallet="0xbbb",
            skill="solidity",
            space_id="local-dev",
            created_at=T0,
            ttl_seconds=3600,
            message="happy to help",
            status="active",
            availability_window="evenings",
        )
        fields.update(overrides)
        return Offer(**fields)
    return _make


@pytest.fixture
def viewer() -> ViewerContext:
    return ViewerContext(wallet="0xviewer", skills={"Solidity", " rust "})


@pytest.fixture
def ask_record() -> Dict[str, Any]:
    """An ask as the store returns it."""
    return {
        "key": "0xask1",
        "wallet": "0xaaa",
        "skill": "Solidity",
        "spaceId": "local-dev",
        "createdAt": "2023-11-14T22:13:20.000Z",
        "status": "open",
        "message": "Stuck on reentrancy guards",
        "ttlSeconds": 3600,
    }


@pytest.fixture
def offer_record() -> Dict[str, Any]:
    """An offer as the store returns it."""
    return {
        "key": "0xoffer1",
        "wallet": "0xbbb",
        "skill": "solidity auditing",
        "spaceId": "local-dev",
        "createdAt": T0,
        "status": "active",
        "message": "Can review contracts",
        "availabilityWindow": "weekday evenings",
        "ttlSeconds": 7200,
    }


@pytest.fixture
def fetch_payload(ask_record, offer_record) -> Dict[str, Any]:
    """A fetch response with one malformed ask."""
    return {
        "asks": [ask_record, {"key": "0xbroken", "wallet": "0xccc"}],
        "offers": [offer_record],
        "profiles": [
            {
                "wallet": "0xbbb",
                "displayName": "Bea Mentor",
                "skills": "solidity, security",
                "seniority": "senior",
                "mentorRoles": ["auditor"],
                "reputationScore": 87,
                "sessionsCompleted": 12,
                "averageRating": 4.6,
            }
        ],
    }
