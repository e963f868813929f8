r"""The `.PropertyEntity` class, which has observable, bindable properties.

A `.PropertyEntity` holds a set of named properties (keys). Any key may be read
with `.PropertyEntity.get` and written with `.PropertyEntity.set`, and every
write publishes notifications that observers may subscribe to with
`.PropertyEntity.on`:

.. code-block:: python

    import propbind as pb

    view = pb.PropertyEntity({"zoom": 2})
    view.on("change:zoom", lambda event: print("zoom is", view.get("zoom")))
    view.set("zoom", 3)  # prints "zoom is 3"

Keys may also be bound to keys of another entity with
`.PropertyEntity.bind_to`\ , after which the two stay in step until
`.PropertyEntity.unbind` is called.
"""

from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Optional

from .binding import Binding, BindingEngine
from .events import EventChannel, Handler, SubscriptionHandle, default_channel
from .exceptions import NotAPropertyEntityError
from .typed import DataKeyProperty, key_properties, typed_setter


class PropertyEntity:
    r"""An object whose properties may be observed and bound.

    Subclassing Notes
    -----------------

    * Typed accessors for particular keys may be declared with
      `.key_property`\ . These are used in preference to `get` and `set`
      when another entity is bound to the key, and by `set_values`\ .
    * Defaults given to `.key_property` are stored when the entity is
      created, before ``values`` is applied, and without notification.
    * Entities are compared and hashed by identity. Don't override ``__eq__``
      or ``__hash__``, as the event channel looks entities up by identity.
    """

    def __init__(
        self,
        values: Optional[Mapping[str, Any]] = None,
        *,
        channel: Optional[EventChannel] = None,
    ) -> None:
        r"""Create an entity, optionally with some initial values.

        :param values: initial values, applied with `set_values`\ .
        :param channel: the event channel to publish on. By default, the
            shared `.default_channel` is used.
        """
        self._engine = BindingEngine(
            self, channel if channel is not None else default_channel
        )
        for prop in key_properties(type(self)):
            if not isinstance(prop, DataKeyProperty):
                continue
            if prop.default_factory is not None:
                self._engine.store.set(prop.key, prop.default_factory())
        if values is not None:
            self.set_values(values)

    @property
    def channel(self) -> EventChannel:
        """The event channel this entity publishes on."""
        return self._engine.channel

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value.

        :param key: the key to read.
        :param default: returned if the key has never been set or bound.
        :return: the value of the key.
        """
        return self._engine.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a value.

        :param key: the key to write.
        :param value: the new value.
        """
        self._engine.set(key, value)

    def notify(self, key: str) -> None:
        """Notify all observers of a change on this property.

        This notifies both entities that are bound to this property and, if
        the property is bound, the entity it is bound to.

        :param key: the key to notify.
        """
        self._engine.notify(key)

    def bind_to(
        self, key: str, target: PropertyEntity, target_key: Optional[str] = None
    ) -> Binding:
        r"""Bind a key of this entity to a key of another.

        Reading ``key`` will then read ``target_key`` on ``target``, and writing
        it will write ``target_key``. Transforms may be added to the returned
        handle. For example, to make ``source_view`` show half the resolution
        of ``target_view``:

        .. code-block:: python

            source_view.bind_to("resolution", target_view).transform(
                lambda source_resolution: 2 * source_resolution,
                lambda target_resolution: target_resolution / 2,
            )

        The binding does not keep ``target`` alive: unbind the key before
        discarding the target.

        :param key: the key on this entity.
        :param target: the entity to bind to.
        :param target_key: the key on ``target``, if different from ``key``.
        :return: a handle for the binding.

        :raises NotAPropertyEntityError: if ``target`` is not a
            `.PropertyEntity`\ .
        """
        if not isinstance(target, PropertyEntity):
            raise NotAPropertyEntityError(
                f"Can't bind '{key}' to {target!r}, which is not a PropertyEntity."
            )
        return self._engine.bind_to(key, target, target_key)

    def unbind(self, key: str) -> None:
        """Remove a binding.

        The unbound key keeps its current value. Observers are not notified,
        as the value has not changed.

        :param key: the key to unbind.
        """
        self._engine.unbind(key)

    def unbind_all(self) -> None:
        """Remove all bindings."""
        self._engine.unbind_all()

    def is_bound(self, key: str) -> bool:
        """Check whether a key is bound to another entity.

        :param key: the key to check.
        :return: whether the key is bound.
        """
        return self._engine.is_bound(key)

    def get_keys(self) -> list[str]:
        """Get a list of property names.

        :return: every key that has been set or bound.
        """
        return self._engine.keys()

    def get_properties(self) -> dict[str, Any]:
        """Get a dictionary of all property names and values.

        :return: a dictionary mapping each key to its current value.
        """
        return self._engine.properties()

    def set_values(self, values: Mapping[str, Any]) -> None:
        """Set a collection of key-value pairs.

        Values are applied in order, using the typed setter declared for a key
        if there is one. If a setter raises an exception, the values before it
        will already have been set.

        :param values: a mapping of keys to new values.
        """
        for key, value in values.items():
            fset = typed_setter(self, key)
            if fset is not None:
                fset(self, value)
            else:
                self.set(key, value)

    def on(self, event_type: str, handler: Handler) -> SubscriptionHandle:
        r"""Subscribe to events published by this entity.

        :param event_type: a change event such as ``"change:zoom"`` (see
            `.change_event_name`), ``"propertychange"`` or ``"beforechange"``.
        :param handler: called with a `.PropertyEvent` each time the event
            is published.
        :return: a handle that may be passed to `off`\ .
        """
        return self.channel.subscribe(self, event_type, handler)

    def off(self, handle: SubscriptionHandle) -> None:
        r"""Remove a subscription made with `on`\ .

        :param handle: the handle returned by `on`\ .
        """
        self.channel.unsubscribe(handle)
