"""
Data model for postings, viewers and the derived graph.

Postings are immutable snapshots read from the entity store. Nodes,
connections and expiry values are derived per recomputation pass and
never outlive it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .normalize import normalize_skill


class PostingKind(Enum):
    """Variant of a posting."""
    ASK = "ask"
    OFFER = "offer"


class ConnectionKind(Enum):
    """Kind of relationship between two nodes."""
    SKILL = "skill"
    MATCH = "match"
    WALLET = "wallet"  # same contributor; kept in the model, never emitted


@dataclass(frozen=True)
class Posting:
    """
    A time-boxed request for, or offer of, help with a skill.

    Attributes:
        key: Opaque unique id assigned by the store
        wallet: Author identity
        skill: Free-text skill tag
        space_id: Partition; postings only match within one space
        created_at: Creation time in epoch milliseconds
        ttl_seconds: Lifetime after creation (not validated to be >= 0)
        message: Free-text body
        status: Store status string ("open", "active", ...)
        tx_hash: Optional transaction hash of the creating write
    """
    key: str
    wallet: str
    skill: str
    space_id: str
    created_at: int
    ttl_seconds: int
    message: str = ""
    status: str = ""
    tx_hash: Optional[str] = None

    kind = None  # overridden by the variants

    @property
    def expires_at(self) -> int:
        return self.created_at + self.ttl_seconds * 1000

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "kind": self.kind.value if self.kind else None,
            "wallet": self.wallet,
            "skill": self.skill,
            "spaceId": self.space_id,
            "createdAt": self.created_at,
            "ttlSeconds": self.ttl_seconds,
            "message": self.message,
            "status": self.status,
            "txHash": self.tx_hash,
        }


@dataclass(frozen=True)
class Ask(Posting):
    """Demand for help with a skill."""
    kind = PostingKind.ASK


@dataclass(frozen=True)
class Offer(Posting):
    """Availability to help with a skill."""
    availability_window: str = ""

    kind = PostingKind.OFFER

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["availabilityWindow"] = self.availability_window
        return data


def normalize_skill_set(skills: Iterable[str]) -> frozenset[str]:
    """Normalise each skill and drop empty ones."""
    return frozenset(normalize_skill(s) for s in skills if s and s.strip())


@dataclass(frozen=True)
class ViewerContext:
    """Who is looking: their wallet and lower-cased skill set."""
    wallet: str
    skills: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "skills", normalize_skill_set(self.skills))

    @classmethod
    def from_profile_skills(cls, wallet: str, skills: str) -> "ViewerContext":
        """Build a viewer from a comma-separated profile skills string."""
        return cls(wallet=wallet, skills=frozenset((skills or "").split(",")))


@dataclass(frozen=True)
class Profile:
    """Author profile as returned alongside postings by the store."""
    wallet: str
    display_name: str = ""
    skills: str = ""
    seniority: str = ""
    mentor_roles: tuple[str, ...] = ()
    learner_roles: tuple[str, ...] = ()
    reputation_score: float = 0.0
    sessions_completed: int = 0
    average_rating: Optional[float] = None
    timezone: str = ""
    space_id: str = ""


@dataclass(frozen=True)
class Expiry:
    """Remaining lifetime of a posting at a given instant."""
    remaining_ms: int
    expired: bool


@dataclass(frozen=True)
class Node:
    """A posting placed in the graph for one viewer."""
    posting: Posting
    relevance: float
    position: tuple[float, float] = (0.0, 0.0)

    @property
    def key(self) -> str:
        return self.posting.key

    @property
    def type(self) -> PostingKind:
        return self.posting.kind

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "type": self.type.value,
            "skill": self.posting.skill,
            "wallet": self.posting.wallet,
            "relevance": round(self.relevance, 3),
            "position": {"x": self.position[0], "y": self.position[1]},
        }


@dataclass(frozen=True)
class Connection:
    """An undirected relationship between two nodes."""
    from_key: str
    to_key: str
    kind: ConnectionKind
    score: Optional[float] = None

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.from_key, self.to_key))

    def to_dict(self) -> dict:
        data = {"from": self.from_key, "to": self.to_key, "kind": self.kind.value}
        if self.score is not None:
            data["score"] = round(self.score, 3)
        return data


@dataclass
class FetchResult:
    """Parsed full-collection fetch response."""
    asks: list[Ask] = field(default_factory=list)
    offers: list[Offer] = field(default_factory=list)
    profiles: list[Profile] = field(default_factory=list)
    skipped: int = 0


@dataclass(frozen=True)
class PushMessage:
    """One creation event from the live subscription."""
    kind: PostingKind
    posting: Posting
