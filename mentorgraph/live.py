"""
Live merge of fetch results and pushed creation events.

The reducer is the only writer of the working posting collection. Pushed
events reach it through a PostingChannel subscription and are folded one at
a time, in arrival order, by Subscription.drain().

States:
- uninitialized: no fetch seen yet; pushes are buffered
- loaded: a fetch has been applied; every later fetch or push keeps it loaded
"""

import queue
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .exceptions import PostingValidationError
from .logger import StructuredLogger, get_logger
from .models import Ask, FetchResult, Offer, Posting, PostingKind, Profile, PushMessage
from .normalize import contains_ci
from .schema import parse_push_message


class PushOutcome(Enum):
    ADMITTED = "admitted"
    FILTERED = "filtered"
    DUPLICATE = "duplicate"
    BUFFERED = "buffered"


class LiveMergeReducer:
    """
    Folds fetch results and pushed postings into the current collection.

    Admitted pushes are prepended, so each list stays most-recent-first.
    With idempotent=True (the default) a push whose key is already present
    is ignored, which makes at-least-once delivery safe.
    """

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"

    def __init__(self, idempotent: bool = True, logger: Optional[StructuredLogger] = None):
        self.idempotent = idempotent
        self.logger = logger or get_logger()
        self.state = self.UNINITIALIZED
        self.asks: list[Ask] = []
        self.offers: list[Offer] = []
        self.profiles: list[Profile] = []
        self.skill_filter: Optional[str] = None
        self._keys: set[str] = set()
        self._pending: list[PushMessage] = []

    @property
    def postings(self) -> list[Posting]:
        """Asks followed by offers; the collection handed to the scorers."""
        return [*self.asks, *self.offers]

    def apply_fetch(self, result: FetchResult, skill_filter: Optional[str] = None) -> None:
        """Replace the collection wholesale and record the skill filter used."""
        self.asks = list(result.asks)
        self.offers = list(result.offers)
        self.profiles = list(result.profiles)
        self.skill_filter = skill_filter or None
        self._keys = {p.key for p in self.postings}
        first_load = self.state == self.UNINITIALIZED
        self.state = self.LOADED
        self.logger.debug(
            "Fetch applied",
            asks=len(self.asks),
            offers=len(self.offers),
            skill_filter=self.skill_filter,
        )

        if first_load and self._pending:
            pending, self._pending = self._pending, []
            self.logger.debug("Replaying pushes received before first fetch", count=len(pending))
            for message in pending:
                self.apply_push(message)

    def admits(self, posting: Posting) -> bool:
        if not self.skill_filter:
            return True
        return contains_ci(posting.skill, self.skill_filter)

    def apply_push(self, message: PushMessage) -> PushOutcome:
        """Fold one pushed posting into the collection."""
        if self.state == self.UNINITIALIZED:
            self._pending.append(message)
            return PushOutcome.BUFFERED

        posting = message.posting
        if self.idempotent and posting.key in self._keys:
            self.logger.record_push(admitted=False, duplicate=True)
            self.logger.debug("Ignoring duplicate push", key=posting.key)
            return PushOutcome.DUPLICATE

        if not self.admits(posting):
            self.logger.record_push(admitted=False)
            return PushOutcome.FILTERED

        if message.kind == PostingKind.ASK:
            self.asks.insert(0, posting)
        else:
            self.offers.insert(0, posting)
        self._keys.add(posting.key)
        self.logger.record_push(admitted=True)
        return PushOutcome.ADMITTED


@dataclass(frozen=True)
class ChannelFailure:
    """A broken subscription, delivered in-band as a non-fatal event."""
    error: str


@dataclass
class DrainResult:
    admitted: int = 0
    filtered: int = 0
    duplicates: int = 0
    buffered: int = 0
    skipped: int = 0
    failures: list[ChannelFailure] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.admitted > 0

    def count(self, outcome: PushOutcome) -> None:
        if outcome == PushOutcome.ADMITTED:
            self.admitted += 1
        elif outcome == PushOutcome.FILTERED:
            self.filtered += 1
        elif outcome == PushOutcome.DUPLICATE:
            self.duplicates += 1
        else:
            self.buffered += 1


class Subscription:
    """One consumer's ordered view of a PostingChannel."""

    def __init__(self, channel: "PostingChannel"):
        self._channel = channel
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self.active = True
        self.failed = False

    def _deliver(self, item: Any) -> None:
        if self.active:
            self._queue.put(item)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._channel._remove(self)

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self, reducer: LiveMergeReducer, timeout: Optional[float] = None) -> DrainResult:
        """
        Fold every queued message into the reducer, oldest first.

        Waits up to `timeout` seconds for the first message (None means do
        not wait). Raw dict messages are parsed; malformed ones are skipped.
        """
        result = DrainResult()
        block = timeout is not None
        while True:
            try:
                item = self._queue.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                break
            block = False

            if isinstance(item, ChannelFailure):
                self.failed = True
                reducer.logger.record_channel_failure()
                reducer.logger.error("Live subscription failed", error=item.error)
                result.failures.append(item)
                continue

            if not isinstance(item, PushMessage):
                try:
                    item = parse_push_message(item)
                except PostingValidationError as e:
                    result.skipped += 1
                    reducer.logger.record_skipped_item("invalid_push")
                    reducer.logger.warning("Skipping malformed push", key=e.key, errors=e.errors)
                    continue

            result.count(reducer.apply_push(item))
        return result


class PostingChannel:
    """
    Fan-out of pushed messages to subscribers, in publish order.

    Producers call publish() for every creation event and fail() when the
    underlying stream breaks. There is no reconnect: after fail() the
    producer is expected to stop.
    """

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, message: Any) -> None:
        """Deliver a PushMessage (or raw `{kind, posting}` dict) to every subscriber."""
        for subscription in list(self._subscriptions):
            subscription._deliver(message)

    def fail(self, error: Any) -> None:
        failure = ChannelFailure(error=str(error))
        for subscription in list(self._subscriptions):
            subscription._deliver(failure)
