"""
Tests for the live merge reducer and posting channel.
"""

from mentorgraph.live import (
    ChannelFailure,
    LiveMergeReducer,
    PostingChannel,
    PushOutcome,
)
from mentorgraph.models import FetchResult, PostingKind, PushMessage

T0 = 1_700_000_000_000


def _push(posting):
    return PushMessage(kind=posting.kind, posting=posting)


class TestReducerStates:
    """Test state transitions."""

    def test_starts_uninitialized(self, quiet_logger):
        """A new reducer holds nothing and waits for a fetch."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        assert reducer.state == LiveMergeReducer.UNINITIALIZED
        assert reducer.postings == []

    def test_fetch_loads(self, make_ask, make_offer, quiet_logger):
        """The first fetch loads asks then offers."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        reducer.apply_fetch(FetchResult(asks=[make_ask()], offers=[make_offer()]))
        assert reducer.state == LiveMergeReducer.LOADED
        assert [p.key for p in reducer.postings] == ["ask-1", "offer-1"]

    def test_fetch_replaces_wholesale(self, make_ask, quiet_logger):
        """A later fetch replaces the collection."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        reducer.apply_fetch(FetchResult(asks=[make_ask(key="a"), make_ask(key="b")]))
        reducer.apply_fetch(FetchResult(asks=[make_ask(key="c")]))
        assert [p.key for p in reducer.postings] == ["c"]
        assert reducer.state == LiveMergeReducer.LOADED

    def test_push_before_fetch_is_replayed(self, make_ask, quiet_logger):
        """Pushes before the first fetch are buffered and replayed after it."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        assert reducer.apply_push(_push(make_ask(key="early"))) == PushOutcome.BUFFERED
        reducer.apply_fetch(FetchResult(asks=[make_ask(key="fetched")]))
        assert [p.key for p in reducer.asks] == ["early", "fetched"]

    def test_buffered_push_already_in_fetch_not_duplicated(self, make_ask, quiet_logger):
        """A buffered push already in the fetch is not inserted twice."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        reducer.apply_push(_push(make_ask(key="same")))
        reducer.apply_fetch(FetchResult(asks=[make_ask(key="same")]))
        assert [p.key for p in reducer.asks] == ["same"]


class TestAdmission:
    """Test live admission against the active skill filter."""

    def test_filtered_admission_scenario(self, make_ask, quiet_logger):
        """Pushes are admitted by the skill filter of the last fetch."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        everything = FetchResult(asks=[make_ask(key="s1"), make_ask(key="d1", skill="design")])
        reducer.apply_fetch(FetchResult(asks=[make_ask(key="s1")]), skill_filter="solidity")

        admitted = reducer.apply_push(_push(make_ask(key="new", skill="Solidity Auditing")))
        dropped = reducer.apply_push(_push(make_ask(key="d2", skill="design")))

        assert admitted == PushOutcome.ADMITTED
        assert dropped == PushOutcome.FILTERED
        assert reducer.asks[0].key == "new"
        assert "d2" not in [p.key for p in reducer.postings]

        reducer.apply_fetch(everything, skill_filter=None)
        assert reducer.skill_filter is None
        assert [p.key for p in reducer.postings] == ["s1", "d1"]
        assert reducer.apply_push(_push(make_ask(key="d3", skill="design"))) == PushOutcome.ADMITTED

    def test_offers_prepended(self, make_offer, quiet_logger):
        """Admitted offers go to the front, newest first."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        reducer.apply_fetch(FetchResult(offers=[make_offer(key="o1")]))
        reducer.apply_push(_push(make_offer(key="o2")))
        reducer.apply_push(_push(make_offer(key="o3")))
        assert [p.key for p in reducer.offers] == ["o3", "o2", "o1"]
        assert reducer.asks == []

    def test_empty_filter_admits_all(self, make_ask, quiet_logger):
        """An empty skill filter admits every push."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        reducer.apply_fetch(FetchResult(), skill_filter="")
        assert reducer.skill_filter is None
        assert reducer.apply_push(_push(make_ask(skill="anything"))) == PushOutcome.ADMITTED

    def test_duplicate_key_ignored(self, make_ask, quiet_logger):
        """A push with a known key is ignored."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        reducer.apply_fetch(FetchResult(asks=[make_ask(key="a")]))
        assert reducer.apply_push(_push(make_ask(key="a"))) == PushOutcome.DUPLICATE
        assert len(reducer.asks) == 1
        assert quiet_logger.metrics["duplicates_ignored"] == 1

    def test_non_idempotent_mode_prepends_duplicates(self, make_ask, quiet_logger):
        """With idempotent=False duplicates are prepended."""
        reducer = LiveMergeReducer(idempotent=False, logger=quiet_logger)
        reducer.apply_fetch(FetchResult(asks=[make_ask(key="a")]))
        reducer.apply_push(_push(make_ask(key="a")))
        assert [p.key for p in reducer.asks] == ["a", "a"]

    def test_metrics_recorded(self, make_ask, quiet_logger):
        """Push outcomes are counted in the logger metrics."""
        reducer = LiveMergeReducer(logger=quiet_logger)
        reducer.apply_fetch(FetchResult(), skill_filter="rust")
        reducer.apply_push(_push(make_ask(key="1", skill="rust")))
        reducer.apply_push(_push(make_ask(key="2", skill="go")))
        metrics = quiet_logger.get_metrics()
        assert metrics["pushes_received"] == 2
        assert metrics["pushes_admitted"] == 1
        assert metrics["pushes_filtered"] == 1
        assert metrics["admission_rate"] == 0.5


class TestChannel:
    """Test the subscription channel and drain loop."""

    def _loaded(self, logger):
        reducer = LiveMergeReducer(logger=logger)
        reducer.apply_fetch(FetchResult())
        return reducer

    def test_drain_folds_in_arrival_order(self, make_ask, make_offer, quiet_logger):
        """Messages of every shape are folded oldest first."""
        channel = PostingChannel()
        subscription = channel.subscribe()
        reducer = self._loaded(quiet_logger)

        channel.publish(_push(make_ask(key="a1")))
        channel.publish({"kind": "offer", "posting": make_offer(key="o1").to_dict()})
        channel.publish({"type": "ask", "entity": make_ask(key="a2").to_dict()})

        result = subscription.drain(reducer)
        assert result.admitted == 3
        assert result.changed
        assert [p.key for p in reducer.asks] == ["a2", "a1"]
        assert reducer.offers[0].availability_window == "evenings"

    def test_malformed_message_skipped(self, make_ask, quiet_logger):
        """Malformed messages are skipped and counted."""
        channel = PostingChannel()
        subscription = channel.subscribe()
        reducer = self._loaded(quiet_logger)

        channel.publish({"kind": "ask", "posting": {"key": "bad"}})
        channel.publish({"kind": "comment", "posting": {}})
        channel.publish(_push(make_ask(key="good")))

        result = subscription.drain(reducer)
        assert result.skipped == 2
        assert result.admitted == 1
        assert quiet_logger.metrics["skip_reasons"]["invalid_push"] == 2

    def test_failure_is_reported_not_raised(self, make_ask, quiet_logger):
        """A channel failure comes back as a value."""
        channel = PostingChannel()
        subscription = channel.subscribe()
        reducer = self._loaded(quiet_logger)

        channel.publish(_push(make_ask(key="before")))
        channel.fail(ConnectionError("socket closed"))

        result = subscription.drain(reducer)
        assert result.admitted == 1
        assert result.failures == [ChannelFailure(error="socket closed")]
        assert subscription.failed
        assert quiet_logger.metrics["channel_failures"] == 1

    def test_unsubscribe_stops_delivery(self, make_ask, quiet_logger):
        """Unsubscribed consumers receive nothing."""
        channel = PostingChannel()
        subscription = channel.subscribe()
        subscription.unsubscribe()
        channel.publish(_push(make_ask()))
        assert channel.subscriber_count == 0
        assert subscription.pending() == 0

    def test_each_subscriber_gets_every_message(self, make_ask):
        """Every subscriber sees each message."""
        channel = PostingChannel()
        first = channel.subscribe()
        second = channel.subscribe()
        channel.publish(_push(make_ask(key="x")))
        assert first.pending() == 1
        assert second.pending() == 1

    def test_drain_empty_with_timeout(self, quiet_logger):
        """Draining an idle subscription returns an empty result."""
        subscription = PostingChannel().subscribe()
        result = subscription.drain(self._loaded(quiet_logger), timeout=0.01)
        assert result.admitted == 0
        assert not result.changed

    def test_kind_comes_from_message(self, make_ask, quiet_logger):
        """The message kind decides which list a posting joins."""
        channel = PostingChannel()
        subscription = channel.subscribe()
        reducer = self._loaded(quiet_logger)
        channel.publish(PushMessage(kind=PostingKind.ASK, posting=make_ask(key="k")))
        subscription.drain(reducer)
        assert reducer.asks[0].key == "k"

    def test_non_finite_timestamp_skipped(self, make_ask, quiet_logger):
        """A pushed posting with an infinite timestamp is skipped and draining continues."""
        channel = PostingChannel()
        subscription = channel.subscribe()
        reducer = self._loaded(quiet_logger)

        bad = make_ask(key="inf").to_dict()
        bad["createdAt"] = float("inf")
        channel.publish({"kind": "ask", "posting": bad})
        channel.publish(_push(make_ask(key="after")))

        result = subscription.drain(reducer)
        assert result.skipped == 1
        assert [p.key for p in reducer.asks] == ["after"]

    def test_mistyped_fields_skipped(self, make_ask, quiet_logger):
        """Pushed postings with non-string fields are skipped, not raised."""
        channel = PostingChannel()
        subscription = channel.subscribe()
        reducer = self._loaded(quiet_logger)

        for field, value in (("skill", 7), ("message", ["hi"]), ("ttlSeconds", 1.5)):
            record = make_ask(key=f"bad-{field}").to_dict()
            record[field] = value
            channel.publish({"kind": "ask", "posting": record})

        result = subscription.drain(reducer)
        assert result.skipped == 3
        assert reducer.asks == []
