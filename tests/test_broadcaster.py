"""Tests for ListenerRegistry fan-out and listener lifecycle"""

import pytest

from app.services.broadcaster import (
    DeliveryError,
    ListenerClosedError,
    ListenerNotFoundError,
    ListenerState,
)


def _update(symbol: str) -> dict:
    return {"type": "priceUpdate", "symbol": symbol, "data": {"currentPrice": 1.0}}


class TestFanOut:
    def test_publish_reaches_matching_and_unfiltered(self, registry, collector_factory):
        c1, c2, c3 = collector_factory(), collector_factory(), collector_factory()
        l1 = registry.connect(c1, listener_id="L1")
        registry.connect(c2, listener_id="L2")
        l3 = registry.connect(c3, listener_id="L3")
        registry.subscribe(l1.id, "AAPL")
        registry.subscribe(l3.id, "MSFT")

        delivered = registry.publish("AAPL", _update("AAPL"))

        assert delivered == 2
        assert {l.id for l in registry.matching("AAPL")} == {"L1", "L2"}
        assert c1.messages == [_update("AAPL")]
        assert c2.messages == [_update("AAPL")]
        assert c3.messages == []

    def test_at_most_one_message_per_publish(self, registry, collector_factory):
        c = collector_factory()
        listener = registry.connect(c)
        registry.subscribe(listener.id, "AAPL")
        registry.subscribe(listener.id, "AAPL")

        registry.publish("AAPL", _update("AAPL"))

        assert len(c.messages) == 1

    def test_publish_symbol_is_case_insensitive(self, registry, collector_factory):
        c = collector_factory()
        listener = registry.connect(c)
        registry.subscribe(listener.id, "nvda")

        assert registry.publish("nvda", _update("NVDA")) == 1
        assert listener.filter == "NVDA"

    def test_publish_without_listeners(self, registry):
        assert registry.publish("AAPL", _update("AAPL")) == 0


class TestSubscriptions:
    def test_state_transitions(self, registry, collector_factory):
        listener = registry.connect(collector_factory())
        assert listener.state is ListenerState.CONNECTED_UNFILTERED

        registry.subscribe(listener.id, "TSLA")
        assert listener.state is ListenerState.CONNECTED_FILTERED

        registry.unsubscribe(listener.id)
        assert listener.state is ListenerState.CONNECTED_UNFILTERED

        registry.disconnect(listener.id)
        assert listener.state is ListenerState.DISCONNECTED
        assert listener.id not in registry

    def test_subscribe_none_clears_filter(self, registry, collector_factory):
        listener = registry.connect(collector_factory())
        registry.subscribe(listener.id, "AAPL")

        registry.subscribe(listener.id, None)

        assert listener.filter is None

    def test_unsubscribe_twice_is_noop(self, registry, collector_factory):
        listener = registry.connect(collector_factory())
        registry.subscribe(listener.id, "AAPL")

        registry.unsubscribe(listener.id)
        registry.unsubscribe(listener.id)

        assert listener.filter is None
        assert len(registry) == 1

    def test_unsubscribe_unknown_listener_is_noop(self, registry):
        registry.unsubscribe("missing")
        assert len(registry) == 0

    def test_subscribe_unknown_listener_raises(self, registry):
        with pytest.raises(ListenerNotFoundError) as exc:
            registry.subscribe("missing", "AAPL")
        assert exc.value.listener_id == "missing"

    def test_disconnect_is_idempotent(self, registry, collector_factory):
        listener = registry.connect(collector_factory())

        registry.disconnect(listener.id)
        registry.disconnect(listener.id)

        assert len(registry) == 0


class TestDeliveryFailures:
    def test_disconnected_listener_receives_nothing(self, registry, collector_factory):
        c1, c2 = collector_factory(), collector_factory()
        l1 = registry.connect(c1, listener_id="L1")
        registry.connect(c2, listener_id="L2")
        registry.subscribe(l1.id, "AAPL")

        registry.disconnect(l1.id)
        delivered = registry.publish("AAPL", _update("AAPL"))

        assert delivered == 1
        assert c1.messages == []
        assert "L1" not in {l.id for l in registry.matching("AAPL")}

    def test_closed_sender_is_removed_and_loop_continues(self, registry, collector_factory):
        def closed(message):
            raise ListenerClosedError("gone")

        healthy = collector_factory()
        registry.connect(closed, listener_id="dead")
        registry.connect(healthy, listener_id="alive")

        delivered = registry.publish("AAPL", _update("AAPL"))

        assert delivered == 1
        assert healthy.messages == [_update("AAPL")]
        assert "dead" not in registry
        assert "alive" in registry

    def test_full_outbox_drops_message_but_keeps_listener(self, registry, collector_factory):
        def full(message):
            raise DeliveryError("outbox full")

        healthy = collector_factory()
        registry.connect(full, listener_id="slow")
        registry.connect(healthy, listener_id="fast")

        delivered = registry.publish("MSFT", _update("MSFT"))

        assert delivered == 1
        assert "slow" in registry
        assert healthy.messages == [_update("MSFT")]
