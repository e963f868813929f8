"""Handle synchronous pub-sub style events.

Every change notification in propbind goes through an `.EventChannel`. A
channel is a registry of handlers, keyed by the entity that publishes and by
the event type. Publishing calls every matching handler immediately, in the
order they subscribed, before `.EventChannel.publish` returns. There is no
queue: a handler that publishes in turn is dispatched depth-first, which is
what makes notifications arrive in a predictable order along a chain of
bindings.

Two families of event type are used by `.PropertyEntity`:

* the canonical change event for a key (see `.change_event_name`), and
* the shared ``beforechange`` and ``propertychange`` events, whose
  `.PropertyEvent` payload names the key that is changing.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, TYPE_CHECKING
from weakref import WeakKeyDictionary, ref

from .exceptions import DispatchDepthExceededError

if TYPE_CHECKING:
    from .config import ChannelConfig
    from .entity import PropertyEntity


class EventType(str, Enum):
    """Event types shared by all the keys of an entity."""

    BEFORE_CHANGE = "beforechange"
    """Published before a key's value changes, with the key as payload."""

    CHANGE = "propertychange"
    """Published after any key's value changes, with the key as payload."""


@dataclass
class PropertyEvent:
    """The payload of a property notification.

    :param type: The event type that was published.
    :param key: The name of the property whose value is changing.
    :param target: The entity that published the event.
    """

    type: str
    key: str
    target: Optional[PropertyEntity] = field(default=None, repr=False)


Handler = Callable[[Any], None]
"""A function that is called with the payload of an event."""


@dataclass(eq=False)
class SubscriptionHandle:
    """A token representing one subscription on an `.EventChannel`.

    Handles are returned by `.EventChannel.subscribe` and are the only way to
    remove a subscription again. They do not keep the entity alive.
    """

    entity: ref
    event_type: str
    handler: Handler
    active: bool = True


class EventChannel:
    """A synchronous registry of event handlers.

    Handlers are stored per entity and per event type. The entity is held
    weakly, so that subscribing to an entity does not extend its lifetime:
    when the entity is garbage collected, its handlers go with it.
    """

    def __init__(self, max_depth: int | None = None) -> None:
        """Initialise an empty channel.

        :param max_depth: the maximum number of publish calls that may be
            nested inside each other. ``None`` (the default) applies no limit,
            in which case cyclic bindings recurse until the interpreter's
            recursion limit is reached.
        """
        self._handles: WeakKeyDictionary[
            Any, dict[str, list[SubscriptionHandle]]
        ] = WeakKeyDictionary()
        self.max_depth = max_depth
        self._depth = 0

    @classmethod
    def from_config(cls, config: ChannelConfig) -> EventChannel:
        """Create a channel from a `.ChannelConfig`.

        :param config: the validated channel configuration.
        :return: a new, empty channel.
        """
        return cls(max_depth=config.max_depth)

    def subscribe(
        self, entity: PropertyEntity, event_type: str, handler: Handler
    ) -> SubscriptionHandle:
        """Call ``handler`` whenever ``entity`` publishes ``event_type``.

        :param entity: the entity to listen to.
        :param event_type: the type of event to listen for.
        :param handler: a function accepting the event payload.
        :return: a handle that may be passed to `.unsubscribe`.
        """
        handle = SubscriptionHandle(ref(entity), event_type, handler)
        by_type = self._handles.setdefault(entity, {})
        by_type.setdefault(handle.event_type, []).append(handle)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Remove a subscription.

        Unsubscribing a handle more than once has no further effect. A handle
        removed while an event is being dispatched will not be called for
        that event if it has not been called already.

        :param handle: the handle returned by `.subscribe`.
        """
        if not handle.active:
            return
        handle.active = False
        entity = handle.entity()
        if entity is None:
            return  # The entity, and so its handlers, have gone already.
        by_type = self._handles.get(entity, {})
        handles = by_type.get(handle.event_type, [])
        if handle in handles:
            handles.remove(handle)
        if not handles:
            by_type.pop(handle.event_type, None)

    def publish(
        self, entity: PropertyEntity, event_type: str, payload: Any = None
    ) -> None:
        """Call the handlers subscribed to ``event_type`` on ``entity``.

        Handlers run synchronously, in subscription order, before this
        method returns.

        :param entity: the entity publishing the event.
        :param event_type: the type of event.
        :param payload: passed as the only argument to each handler.

        :raises DispatchDepthExceededError: if ``max_depth`` is set and
            publishing would nest more deeply than it allows.
        """
        try:
            handles = self._handles[entity][event_type]
        except KeyError:
            return  # Nothing is listening.
        if self.max_depth is not None and self._depth >= self.max_depth:
            raise DispatchDepthExceededError(
                f"Publishing '{event_type}' would nest more than {self.max_depth} "
                "notifications. Check for bindings that form a cycle."
            )
        self._depth += 1
        try:
            # Copy the list, as handlers may subscribe or unsubscribe.
            for handle in list(handles):
                if handle.active:
                    handle.handler(payload)
        finally:
            self._depth -= 1

    def count(self, entity: PropertyEntity, event_type: str | None = None) -> int:
        """Count the active subscriptions on an entity.

        :param entity: the entity to inspect.
        :param event_type: if given, count only subscriptions to this type.
        :return: the number of subscriptions.
        """
        by_type = self._handles.get(entity, {})
        if event_type is not None:
            return len(by_type.get(event_type, []))
        return sum(len(handles) for handles in by_type.values())


default_channel = EventChannel()
"""The channel used by entities that are not given one explicitly."""
