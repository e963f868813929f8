"""Test the synchronous event channel."""

import gc

import pytest

from propbind import ChannelConfig, EventChannel, PropertyEntity
from propbind.exceptions import DispatchDepthExceededError


class Publisher:
    """Something hashable and weak-referenceable to publish events from."""


@pytest.fixture
def channel():
    return EventChannel()


def test_publish_calls_handlers_in_order(channel):
    """Handlers run synchronously, in the order they subscribed."""
    publisher = Publisher()
    calls = []
    channel.subscribe(publisher, "ping", lambda p: calls.append(("first", p)))
    channel.subscribe(publisher, "ping", lambda p: calls.append(("second", p)))
    channel.subscribe(publisher, "pong", lambda p: calls.append(("pong", p)))
    channel.publish(publisher, "ping", 1)
    assert calls == [("first", 1), ("second", 1)]


def test_publish_without_subscribers(channel):
    """Publishing with nobody listening does nothing."""
    channel.publish(Publisher(), "ping", 1)


def test_handlers_are_per_entity(channel):
    """Events from one entity don't reach handlers subscribed to another."""
    a, b = Publisher(), Publisher()
    calls = []
    channel.subscribe(a, "ping", calls.append)
    channel.publish(b, "ping", "from b")
    assert calls == []
    channel.publish(a, "ping", "from a")
    assert calls == ["from a"]


def test_unsubscribe_is_idempotent(channel):
    """A handle may be unsubscribed more than once."""
    publisher = Publisher()
    calls = []
    handle = channel.subscribe(publisher, "ping", calls.append)
    assert channel.count(publisher, "ping") == 1
    channel.unsubscribe(handle)
    channel.unsubscribe(handle)
    assert not handle.active
    assert channel.count(publisher) == 0
    channel.publish(publisher, "ping", 1)
    assert calls == []


def test_unsubscribe_during_dispatch(channel):
    """A handler removed by an earlier handler is not called."""
    publisher = Publisher()
    calls = []
    second = None

    def first(payload):
        calls.append("first")
        channel.unsubscribe(second)

    channel.subscribe(publisher, "ping", first)
    second = channel.subscribe(publisher, "ping", lambda p: calls.append("second"))
    channel.publish(publisher, "ping")
    assert calls == ["first"]


def test_subscribe_during_dispatch(channel):
    """A handler added while publishing is called from the next event."""
    publisher = Publisher()
    calls = []

    def first(payload):
        calls.append(("first", payload))
        channel.subscribe(publisher, "ping", lambda p: calls.append(("late", p)))

    channel.subscribe(publisher, "ping", first)
    channel.publish(publisher, "ping", 1)
    assert calls == [("first", 1)]


def test_entities_are_not_kept_alive(channel):
    """Subscribing to an entity doesn't stop it being garbage collected."""
    publisher = Publisher()
    handle = channel.subscribe(publisher, "ping", lambda p: None)
    del publisher
    gc.collect()
    assert handle.entity() is None
    # Unsubscribing after the entity has gone is harmless
    channel.unsubscribe(handle)
    assert len(channel._handles) == 0


def test_max_depth():
    """Nested publishing beyond ``max_depth`` raises an error."""
    channel = EventChannel(max_depth=3)
    publisher = Publisher()
    depths = []

    def recurse(depth):
        depths.append(depth)
        channel.publish(publisher, "ping", depth + 1)

    channel.subscribe(publisher, "ping", recurse)
    with pytest.raises(DispatchDepthExceededError):
        channel.publish(publisher, "ping", 1)
    assert depths == [1, 2, 3]
    # The depth counter is unwound, so the channel is still usable.
    assert channel._depth == 0
    assert isinstance(DispatchDepthExceededError(), RecursionError)


def test_from_config():
    """Channels may be created from a `ChannelConfig`."""
    assert EventChannel.from_config(ChannelConfig()).max_depth is None
    assert EventChannel.from_config(ChannelConfig(max_depth=10)).max_depth == 10


def test_entity_on_and_off(channel):
    """`PropertyEntity.on` and `off` wrap the entity's channel."""
    entity = PropertyEntity(channel=channel)
    calls = []
    handle = entity.on("change:a", lambda event: calls.append(event.key))
    entity.set("a", 1)
    entity.off(handle)
    entity.set("a", 2)
    assert calls == ["a"]
