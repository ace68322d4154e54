"""
A viewing session: the live collection seen through one viewer's filters.

Snapshots are recomputed on every change (fetch, push, filter or viewer
change) and on the refresh tick. A failed recomputation logs the error and
keeps serving the last good snapshot.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

from .expiry import expiry_map
from .filters import NetworkFilter
from .graph import Graph, build_graph
from .live import LiveMergeReducer
from .logger import StructuredLogger, get_logger
from .models import Connection, Expiry, Node, ViewerContext


@dataclass(frozen=True)
class Snapshot:
    """Everything the UI collaborator needs for one render."""
    now: int
    nodes: list[Node] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    expiry: dict[str, Expiry] = field(default_factory=dict)
    stale: bool = False

    @property
    def ranked(self) -> list[Node]:
        return self.nodes

    def to_dict(self) -> dict:
        return {
            "now": self.now,
            "stale": self.stale,
            "nodes": [
                {**n.to_dict(), **_expiry_dict(self.expiry.get(n.key))} for n in self.nodes
            ],
            "connections": [c.to_dict() for c in self.connections],
        }


def _expiry_dict(expiry: Optional[Expiry]) -> dict:
    if expiry is None:
        return {}
    return {"remainingMs": expiry.remaining_ms, "expired": expiry.expired}


class ViewingSession:
    def __init__(
        self,
        viewer: ViewerContext,
        reducer: Optional[LiveMergeReducer] = None,
        network_filter: Optional[NetworkFilter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.viewer = viewer
        self.logger = logger or get_logger()
        self.reducer = reducer or LiveMergeReducer(logger=self.logger)
        self.network_filter = network_filter or NetworkFilter()
        self.last_good: Optional[Snapshot] = None

    def set_viewer(self, viewer: ViewerContext) -> None:
        self.viewer = viewer

    def set_filter(self, network_filter: NetworkFilter) -> None:
        """
        Change viewer-side filters.

        The skill filter also governs live admission, but only once a fetch
        made with it is applied to the reducer.
        """
        self.network_filter = network_filter

    def _compute(self, now: int) -> Snapshot:
        postings = self.network_filter.apply(self.reducer.postings, self.reducer.profiles, now)
        graph: Graph = build_graph(postings, self.viewer, now)
        return Snapshot(
            now=now,
            nodes=graph.nodes,
            connections=graph.connections,
            expiry=expiry_map(postings, now),
        )

    def snapshot(self, now: int) -> Snapshot:
        """Recompute ranking, graph and expiry state for `now`."""
        try:
            snap = self._compute(now)
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            self.logger.record_recompute(success=False)
            self.logger.error(
                "Recomputation failed; keeping last good snapshot",
                error=str(e),
                error_type=type(e).__name__,
            )
            if self.last_good is None:
                return Snapshot(now=now, stale=True)
            return replace(self.last_good, stale=True)

        self.logger.record_recompute()
        self.last_good = snap
        return snap

    def tick(self, now: int) -> Snapshot:
        """Refresh-timer entry point: recompute only, never fetch."""
        return self.snapshot(now)
