"""
Graph building for the network view.

Turns a posting collection into relevance-ordered nodes with layout hints
and a deduplicated list of skill and match connections. Pure: the output
depends only on (postings, viewer, now).

Connection construction compares all pairs, so cost is O(n^2) in the
number of postings.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Iterable

from .compatibility import match_score
from .constants import (
    LARGE_GRAPH_WARNING,
    LAYOUT_COLUMN_SPACING,
    LAYOUT_MARGIN,
    LAYOUT_ROW_SPACING,
    LAYOUT_ROW_SPACING_STEP,
    MATCH_THRESHOLD,
)
from .logger import get_logger
from .models import Connection, ConnectionKind, Node, Posting, PostingKind, ViewerContext
from .relevance import rank_postings, skills_equal

logger = get_logger()


@dataclass
class Graph:
    nodes: list[Node] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": [c.to_dict() for c in self.connections],
        }


class ConnectionSet:
    """Connections keyed by unordered endpoint pair and kind; first one wins."""

    def __init__(self):
        self._seen: set[tuple[frozenset[str], ConnectionKind]] = set()
        self.connections: list[Connection] = []

    def add(self, connection: Connection) -> bool:
        if connection.from_key == connection.to_key:
            return False
        ident = (connection.pair, connection.kind)
        if ident in self._seen:
            return False
        self._seen.add(ident)
        self.connections.append(connection)
        return True

    def __len__(self) -> int:
        return len(self.connections)


def rank_nodes(postings: Iterable[Posting], viewer: ViewerContext, now: int) -> list[Node]:
    """Wrap postings as nodes sorted by relevance (stable, descending)."""
    return [Node(posting=p, relevance=score) for p, score in rank_postings(postings, viewer, now)]


def layout_positions(count: int) -> list[tuple[float, float]]:
    """
    Grid positions for `count` nodes in ranked order.

    Uses ceil(sqrt(count)) columns. Row gaps widen as rows go down, so the
    most relevant rows sit closer together near the top.
    """
    if count <= 0:
        return []
    columns = math.ceil(math.sqrt(count))
    positions = []
    y = LAYOUT_MARGIN
    for i in range(count):
        row, col = divmod(i, columns)
        if col == 0 and row > 0:
            y += LAYOUT_ROW_SPACING + (row - 1) * LAYOUT_ROW_SPACING_STEP
        positions.append((LAYOUT_MARGIN + col * LAYOUT_COLUMN_SPACING, y))
    return positions


def skill_connections(nodes: list[Node], connections: ConnectionSet) -> None:
    for i, a in enumerate(nodes):
        for b in nodes[i + 1:]:
            if skills_equal(a.posting.skill, b.posting.skill):
                connections.add(Connection(a.key, b.key, ConnectionKind.SKILL))


def match_connections(nodes: list[Node], connections: ConnectionSet, now: int) -> None:
    asks = [n for n in nodes if n.type == PostingKind.ASK]
    offers = [n for n in nodes if n.type == PostingKind.OFFER]
    for ask in asks:
        for offer in offers:
            if ask.posting.wallet == offer.posting.wallet:
                continue
            score = match_score(ask.posting, offer.posting, now)
            if score > MATCH_THRESHOLD:
                connections.add(Connection(ask.key, offer.key, ConnectionKind.MATCH, score))


def build_graph(postings: Iterable[Posting], viewer: ViewerContext, now: int) -> Graph:
    """
    Build the network graph for one viewer.

    Args:
        postings: Current posting collection
        viewer: Viewer wallet and skills
        now: Current time in epoch milliseconds

    Returns:
        Graph with ranked, positioned nodes and deduplicated connections
    """
    nodes = rank_nodes(postings, viewer, now)
    if len(nodes) > LARGE_GRAPH_WARNING:
        logger.warning(
            "Large posting collection; all-pairs connection building is quadratic",
            postings=len(nodes),
        )

    positions = layout_positions(len(nodes))
    nodes = [replace(node, position=pos) for node, pos in zip(nodes, positions)]

    connections = ConnectionSet()
    skill_connections(nodes, connections)
    match_connections(nodes, connections, now)

    logger.debug("Graph built", nodes=len(nodes), connections=len(connections))
    return Graph(nodes=nodes, connections=connections.connections)
