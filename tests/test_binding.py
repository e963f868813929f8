"""Test binding the properties of one entity to those of another."""

import gc
import logging

import pytest

import propbind as pb
from propbind.example_entities import Knob
from propbind.exceptions import (
    DispatchDepthExceededError,
    NotAPropertyEntityError,
    TargetReleasedError,
)
from .utilities import EventRecorder


@pytest.fixture
def channel():
    return pb.EventChannel()


@pytest.fixture
def source(channel):
    return pb.PropertyEntity(channel=channel)


@pytest.fixture
def target(channel):
    return pb.PropertyEntity({"b": 1}, channel=channel)


def test_bound_value_is_visible_immediately(source, target):
    """Binding notifies the source, which then reads the target's value."""
    recorder = EventRecorder().watch(source, "source").watch(target, "target")
    source.bind_to("a", target, "b")
    assert source.get("a") == target.get("b") == 1
    assert source.is_bound("a")
    assert recorder.events == [("source", "propertychange", "a")]


def test_target_key_defaults_to_source_key(source, target):
    """Binding without a target key uses the same key on the target."""
    binding = source.bind_to("b", target)
    assert binding.target_key == "b"
    assert binding.target is target
    assert source.get("b") == 1


def test_values_are_not_cached(source, target):
    """Reading a bound key always reads the target."""
    source.bind_to("a", target, "b")
    target.set("b", 2)
    assert source.get("a") == 2


def test_set_bound_key(source, target):
    """Setting a bound key writes the target, and notifies both entities."""
    source.bind_to("a", target, "b")
    recorder = EventRecorder().watch(source, "source").watch(target, "target")
    source.set("a", 5)
    assert target.get("b") == 5
    assert source.get("a") == 5
    # The target relays its own beforechange to the source before the
    # recorder, which subscribed later, hears about it.
    assert recorder.before_changes() == [
        ("source", "a"),
        ("source", "a"),
        ("target", "b"),
    ]
    assert recorder.changes() == [("source", "a"), ("target", "b")]
    # The value lives on the target only
    assert "a" not in source._engine.store


def test_target_change_notifies_source(source, target):
    """Changes made on the target are relayed to the source."""
    source.bind_to("a", target, "b")
    recorder = EventRecorder().watch(source, "source")
    target.set("b", 3)
    assert recorder.events == [
        ("source", "beforechange", "a"),
        ("source", "propertychange", "a"),
    ]
    target.set("c", 3)
    assert len(recorder.events) == 2


def test_transform(source, target):
    """Transforms convert values in each direction across the binding."""
    binding = source.bind_to("a", target, "b")
    recorder = EventRecorder().watch(source, "source")
    returned = binding.transform(lambda v: v * 2, lambda v: v / 2)
    assert returned is binding
    # Changing the transform notifies the source, as its value may change
    assert recorder.changes() == [("source", "a")]
    assert source.get("a") == target.get("b") / 2
    source.set("a", 10)
    assert target.get("b") == 20
    assert source.get("a") == 10


def test_chain(channel):
    """A change at the end of a chain is relayed back along it, in order."""
    a = pb.PropertyEntity(channel=channel)
    b = pb.PropertyEntity(channel=channel)
    c = pb.PropertyEntity({"z": 1}, channel=channel)
    order = []
    b.on(pb.change_event_name("y"), lambda e: order.append(("b", e.key)))
    a.on(pb.change_event_name("x"), lambda e: order.append(("a", e.key)))
    a.bind_to("x", b, "y")
    b.bind_to("y", c, "z")
    assert a.get("x") == 1
    order.clear()
    recorder = EventRecorder().watch(a, "a").watch(b, "b")

    c.set("z", 5)

    assert order == [("b", "y"), ("a", "x")]
    assert sorted(recorder.changes()) == [("a", "x"), ("b", "y")]
    # Before-change relays run before the recorder, which subscribed last.
    assert recorder.before_changes() == [("a", "x"), ("b", "y")]
    assert a.get("x") == 5


def test_chain_write_from_the_start(channel):
    """Writing the first entity of a chain reaches the last."""
    a = pb.PropertyEntity(channel=channel)
    b = pb.PropertyEntity(channel=channel)
    c = pb.PropertyEntity(channel=channel)
    a.bind_to("x", b, "y").transform(lambda v: v + 1, lambda v: v - 1)
    b.bind_to("y", c, "z").transform(lambda v: v * 10, lambda v: v / 10)
    a.set("x", 1)
    assert c.get("z") == 20
    assert b.get("y") == 2
    assert a.get("x") == 1


def test_before_change_relay_is_filtered(source, target):
    """Only ``beforechange`` events for the bound key are relayed."""
    source.bind_to("a", target, "b")
    recorder = EventRecorder().watch(source, "source")
    target.set("w", 1)
    assert recorder.before_changes() == []
    target.set("b", 1)
    assert recorder.before_changes() == [("source", "a")]


def test_notify_bound_key(source, target):
    """Notifying a bound key asks the target to notify."""
    source.bind_to("a", target, "b")
    recorder = EventRecorder().watch(source, "source").watch(target, "target")
    source.notify("a")
    assert recorder.changes() == [("source", "a"), ("target", "b")]


def test_unbind(source, target):
    """Unbinding keeps the last value seen, without notifying."""
    source.bind_to("a", target, "b").transform(lambda v: v * 2, lambda v: v * 3)
    recorder = EventRecorder().watch(source, "source").watch(target, "target")
    source.unbind("a")
    assert recorder.events == []
    assert not source.is_bound("a")
    assert source.get("a") == 3
    source.set("a", 7)
    assert target.get("b") == 1
    recorder.clear()
    target.set("b", 2)
    assert recorder.changes() == [("target", "b")]
    assert source.get("a") == 7
    # Unbinding again is harmless
    source.unbind("a")
    assert source.get("a") == 7


def test_unbind_all(channel, source, target):
    """Unbinding everything keeps the keys and values, but stops relaying."""
    other = pb.PropertyEntity({"d": "dee"}, channel=channel)
    source.set("local", 0)
    source.bind_to("a", target, "b")
    source.bind_to("c", other, "d")
    keys = set(source.get_keys())
    properties = source.get_properties()
    assert properties == {"local": 0, "a": 1, "c": "dee"}

    source.unbind_all()

    assert set(source.get_keys()) == keys
    assert source.get_properties() == properties
    assert channel.count(target) == 0
    assert channel.count(other) == 0
    recorder = EventRecorder().watch(source, "source")
    target.set("b", 2)
    other.set("d", "dum")
    assert recorder.events == []


def test_rebind(channel, source, target):
    """Binding a bound key again replaces the old binding."""
    other = pb.PropertyEntity({"b": "other"}, channel=channel)
    source.bind_to("a", target, "b")
    assert channel.count(target) == 2
    source.bind_to("a", other, "b")
    assert channel.count(target) == 0
    assert channel.count(other) == 2
    assert source.get("a") == "other"
    recorder = EventRecorder().watch(source, "source")
    target.set("b", 2)
    assert recorder.events == []
    other.set("b", 3)
    assert recorder.changes() == [("source", "a")]


def test_keys_are_stored_or_bound(source, target):
    """A key is either stored or bound, and listed once."""
    source.set("a", "local")
    source.bind_to("a", target, "b")
    assert source.get_keys() == ["a"]
    assert "a" not in source._engine.store
    assert source.get_properties() == {"a": 1}
    source.unbind("a")
    assert source.get_keys() == ["a"]
    assert not source._engine.accessors.has("a")


def test_bind_to_typed_target(channel, source):
    """Typed setters and getters on the target are used through bindings."""
    knob = Knob(channel=channel)
    source.bind_to("p", knob, "position")
    source.set("p", 5)
    assert knob.position == 1.0
    assert source.get("p") == 1.0
    source.set("p", 0.25)
    assert source.get("p") == 0.25


def test_bind_to_self(source):
    """One key of an entity may be bound to another key of the same entity."""
    source.set("b", 1)
    source.bind_to("a", source, "b")
    recorder = EventRecorder().watch(source, "source")
    source.set("b", 2)
    assert source.get("a") == 2
    assert recorder.changes() == [("source", "a"), ("source", "b")]


def test_target_must_be_an_entity(source):
    with pytest.raises(NotAPropertyEntityError):
        source.bind_to("a", {"a": 1})


def test_released_target(source, caplog):
    """Bindings don't keep targets alive."""
    target = pb.PropertyEntity({"b": 1}, channel=source.channel)
    source.bind_to("a", target, "b")
    del target
    gc.collect()
    with pytest.raises(TargetReleasedError):
        source.get("a")
    with pytest.raises(TargetReleasedError):
        source.set("a", 2)
    with caplog.at_level(logging.WARNING, logger="propbind.binding"):
        source.unbind("a")
    assert "has gone" in caplog.text
    assert source.get_properties() == {"a": None}


def test_cycle_with_depth_guard():
    """Binding in a cycle is caught, if the channel has a maximum depth."""
    channel = pb.EventChannel(max_depth=50)
    a = pb.PropertyEntity({"x": 1}, channel=channel)
    b = pb.PropertyEntity(channel=channel)
    b.bind_to("x", a)
    with pytest.raises(DispatchDepthExceededError):
        a.bind_to("x", b)


def test_unbind_when_reading_fails(channel, source, target):
    """A failing read while unbinding still removes the binding completely."""
    other = pb.PropertyEntity({"b": 2}, channel=channel)

    def reverse(value):
        if value == 5:
            raise ValueError("Can't convert 5.")
        return value

    source.bind_to("a", target, "b").transform(lambda v: v, reverse)
    target.set("b", 5)
    with pytest.raises(ValueError):
        source.unbind("a")
    assert not source.is_bound("a")
    assert channel.count(target) == 0
    assert "a" not in source.get_keys()
    # Unbinding again does nothing, and the key may be bound afresh.
    source.unbind("a")
    source.bind_to("a", other, "b")
    assert source.get("a") == 2
    recorder = EventRecorder().watch(source, "source")
    target.set("b", 6)
    assert recorder.events == []
    other.set("b", 3)
    assert recorder.before_changes() == [("source", "a")]
    assert recorder.changes() == [("source", "a")]
