"""Publish change notifications for the keys of an entity.

Each key has a canonical change event, named by `.change_event_name`. When a
key changes, `.notify_change` publishes that event and then the generic
``propertychange`` event, so observers may listen either to one key or to
every key of an entity.
"""

from __future__ import annotations
from functools import lru_cache
from typing import TYPE_CHECKING

from .events import EventChannel, EventType, PropertyEvent

if TYPE_CHECKING:
    from .entity import PropertyEntity


CHANGE_EVENT_PREFIX = "change:"
"""Prefix of the canonical change event of every key."""


@lru_cache(maxsize=None)
def change_event_name(key: str) -> str:
    """Return the canonical change event type for a key.

    Keys are case-insensitive for this purpose, so ``"Resolution"`` and
    ``"resolution"`` share the event ``"change:resolution"``.

    :param key: the property name.
    :return: the event type published when ``key`` changes.
    """
    return CHANGE_EVENT_PREFIX + key.lower()


def notify_change(channel: EventChannel, entity: PropertyEntity, key: str) -> None:
    """Publish the change notifications for one key.

    :param channel: the channel to publish on.
    :param entity: the entity whose property changed.
    :param key: the property that changed.
    """
    event_type = change_event_name(key)
    channel.publish(entity, event_type, PropertyEvent(event_type, key, entity))
    channel.publish(
        entity, EventType.CHANGE, PropertyEvent(EventType.CHANGE, key, entity)
    )


def notify_before_change(
    channel: EventChannel, entity: PropertyEntity, key: str
) -> None:
    """Publish the notification sent before a key changes.

    :param channel: the channel to publish on.
    :param entity: the entity whose property is about to change.
    :param key: the property that is about to change.
    """
    channel.publish(
        entity,
        EventType.BEFORE_CHANGE,
        PropertyEvent(EventType.BEFORE_CHANGE, key, entity),
    )
