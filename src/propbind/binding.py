r"""Bind the properties of one entity to those of another.

`.BindingEngine` holds the state behind a `.PropertyEntity`\ : its stored
values, the `.Accessor` of every bound key, and the subscriptions that relay
notifications from each binding's target. It implements the get, set and
notify dispatch of an entity:

* Reading a bound key follows its accessor to the target and applies the
  reverse transform. Nothing is cached, so the value is always current.
* Writing a bound key applies the forward transform and writes the target.
  The source is notified when the target's change notification is relayed
  back, rather than directly.
* ``beforechange`` events from a target are relayed only for the bound key,
  so that chains of bindings with different key names behave correctly.

All of this is synchronous: a write on the end of a chain of bindings has
notified every entity in the chain by the time it returns.
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING
from typing_extensions import Self

from .accessor import Accessor, Transform
from .events import EventChannel, EventType, Handler, PropertyEvent
from .exceptions import TargetReleasedError
from .notifier import change_event_name, notify_before_change, notify_change
from .tables import AccessorTable, PropertyStore, RelaySubscriptions, SubscriptionTable
from .typed import read_value, write_value

if TYPE_CHECKING:
    from .entity import PropertyEntity

_LOGGER = logging.getLogger(__name__)


class Binding:
    """The handle returned when a key is bound.

    It allows transforms to be added to the binding after it is made:

    .. code-block:: python

        source.bind_to("resolution", target).transform(
            lambda source_resolution: 2 * source_resolution,
            lambda target_resolution: target_resolution / 2,
        )
    """

    def __init__(
        self, engine: BindingEngine, source_key: str, accessor: Accessor
    ) -> None:
        """Create a handle for a binding that has just been made.

        :param engine: the engine of the source entity.
        :param source_key: the key that was bound.
        :param accessor: the accessor installed for ``source_key``.
        """
        self._engine = engine
        self.source_key = source_key
        self.accessor = accessor

    @property
    def target_key(self) -> str:
        """The key on the target that the source key is bound to."""
        return self.accessor.target_key

    @property
    def target(self) -> PropertyEntity:
        """The entity the source key is bound to."""
        return self.accessor.target

    def transform(self, forward: Transform, reverse: Transform) -> Self:
        """Replace the transforms applied across this binding.

        Observers of the source key are notified, as the value seen through
        the binding may change.

        :param forward: converts values written on the source key before they
            are set on the target.
        :param reverse: converts values read from the target key before they
            are returned from the source.
        :return: this handle.
        """
        self.accessor.forward = forward
        self.accessor.reverse = reverse
        self._engine.notify_internal(self.source_key)
        return self


class BindingEngine:
    """Store, bind and notify the properties of one entity."""

    def __init__(self, entity: PropertyEntity, channel: EventChannel) -> None:
        """Set up empty tables for an entity.

        :param entity: the entity that owns this engine.
        :param channel: the channel on which ``entity`` publishes.
        """
        self.entity = entity
        self.channel = channel
        self.store = PropertyStore()
        self.accessors = AccessorTable()
        self.subscriptions = SubscriptionTable()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value of a key.

        :param key: the key to read.
        :param default: returned if ``key`` is neither bound nor stored.
        :return: the value, following the binding if ``key`` is bound.
        """
        accessor = self.accessors.get(key)
        if accessor is not None:
            return accessor.reverse(read_value(accessor.target, accessor.target_key))
        return self.store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set the value of a key.

        A ``beforechange`` notification is always published first. If the key
        is bound, the value is transformed and written to the target, and the
        change notification arrives through the relay. Otherwise, the value is
        stored here and the change notification is published.

        :param key: the key to write.
        :param value: the new value.
        """
        notify_before_change(self.channel, self.entity, key)
        accessor = self.accessors.get(key)
        if accessor is not None:
            write_value(accessor.target, accessor.target_key, accessor.forward(value))
        else:
            self.store.set(key, value)
            self.notify_internal(key)

    def notify(self, key: str) -> None:
        """Notify observers of a key without changing it.

        If the key is bound, the target is asked to notify instead, so every
        entity bound to the same target hears about it.

        :param key: the key to notify.
        """
        accessor = self.accessors.get(key)
        if accessor is not None:
            accessor.target.notify(accessor.target_key)
        else:
            self.notify_internal(key)

    def notify_internal(self, key: str) -> None:
        """Publish the change notifications for a key on this entity.

        :param key: the key that changed.
        """
        notify_change(self.channel, self.entity, key)

    def is_bound(self, key: str) -> bool:
        """Check whether a key is bound.

        :param key: the key to check.
        :return: whether ``key`` has an accessor.
        """
        return self.accessors.has(key)

    def bind_to(
        self, source_key: str, target: PropertyEntity, target_key: Optional[str] = None
    ) -> Binding:
        """Bind a key of this entity to a key of ``target``.

        Any existing binding of ``source_key`` is removed first. Observers of
        ``source_key`` are notified once the binding is in place, so they see
        the bound value straight away.

        :param source_key: the key on this entity.
        :param target: the entity to bind to. Only a weak reference is kept.
        :param target_key: the key on ``target``, defaulting to ``source_key``.
        :return: a handle that may be used to add transforms.
        """
        target_key = target_key or source_key
        self.unbind(source_key)

        target_channel = target.channel
        value_relay = target_channel.subscribe(
            target,
            change_event_name(target_key),
            self._value_relay(source_key),
        )
        before_change_relay = target_channel.subscribe(
            target,
            EventType.BEFORE_CHANGE,
            self._before_change_relay(source_key, target_key),
        )
        self.subscriptions.set(
            source_key,
            RelaySubscriptions(target_channel, value_relay, before_change_relay),
        )

        accessor = Accessor.to(target, target_key)
        self.store.remove(source_key)
        self.accessors.set(source_key, accessor)
        _LOGGER.debug(
            "Bound %r of %r to %r of %r", source_key, self.entity, target_key, target
        )
        self.notify_internal(source_key)
        return Binding(self, source_key, accessor)

    def _value_relay(self, source_key: str) -> Handler:
        """Make a handler that notifies ``source_key`` when the target changes.

        :param source_key: the key on this entity.
        :return: a handler for the target's change event.
        """

        def relay(_event: PropertyEvent) -> None:
            self.notify_internal(source_key)

        return relay

    def _before_change_relay(self, source_key: str, target_key: str) -> Handler:
        """Make a handler that relays ``beforechange`` for the bound key only.

        :param source_key: the key on this entity.
        :param target_key: the key on the target.
        :return: a handler for the target's ``beforechange`` event.
        """

        def relay(event: PropertyEvent) -> None:
            if event.key == target_key:
                notify_before_change(self.channel, self.entity, source_key)

        return relay

    def unbind(self, key: str) -> None:
        """Remove the binding of a key, keeping its current value.

        The value seen through the binding is stored locally, so no change
        notification is published. Unbinding a key that is not bound does
        nothing.

        If reading the value raises (for example, in the reverse transform),
        the key is still unbound and both relays are removed, but no value is
        stored for it and the exception propagates.

        :param key: the key to unbind.
        """
        subscriptions = self.subscriptions.get(key)
        if subscriptions is None:
            return
        try:
            if subscriptions.value_relay is not None:
                subscriptions.channel.unsubscribe(subscriptions.value_relay)
                subscriptions.value_relay = None
                try:
                    value = self.get(key)
                except TargetReleasedError:
                    _LOGGER.warning(
                        "The target of %r on %r has gone, so it is unbound as None.",
                        key,
                        self.entity,
                    )
                    value = None
                self.store.set(key, value)
        finally:
            self.accessors.remove(key)
            if subscriptions.before_change_relay is not None:
                subscriptions.channel.unsubscribe(subscriptions.before_change_relay)
                subscriptions.before_change_relay = None
            self.subscriptions.remove(key)
            _LOGGER.debug("Unbound %r of %r", key, self.entity)

    def unbind_all(self) -> None:
        """Remove every binding, keeping the current values."""
        for key in list(self.subscriptions.keys()):
            self.unbind(key)

    def keys(self) -> list[str]:
        """List every key that is stored or bound, each once.

        :return: the stored keys, followed by the bound keys.
        """
        return list(dict.fromkeys([*self.store.keys(), *self.accessors.keys()]))

    def properties(self) -> dict[str, Any]:
        """Return the current value of every key.

        :return: a dictionary mapping each key to its value.
        """
        return {key: self.get(key) for key in self.keys()}

