r"""Per-entity tables, keyed by property name.

Each `.PropertyEntity` owns three `.KeyTable`\ s:

* a `.PropertyStore` of values for keys that are not bound,
* an `.AccessorTable` of `.Accessor` records for keys that are bound, and
* a `.SubscriptionTable` of the relay subscriptions made for each binding.

A key is in the store or the accessor table, never both.
"""

from __future__ import annotations
from collections.abc import Iterator, KeysView, ItemsView
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from .accessor import Accessor
from .events import EventChannel, SubscriptionHandle

V = TypeVar("V")
"""The type of value stored in a table."""


class KeyTable(Generic[V]):
    """A mapping from property names to values of one type."""

    def __init__(self) -> None:
        """Initialise an empty table."""
        self._data: dict[str, V] = {}

    def get(self, key: str, default: Optional[V] = None) -> Optional[V]:
        """Return the entry for ``key``, or ``default`` if there isn't one.

        :param key: the property name.
        :param default: returned if ``key`` is absent.
        :return: the stored entry or ``default``.
        """
        return self._data.get(key, default)

    def set(self, key: str, value: V) -> None:
        """Add or replace the entry for ``key``.

        :param key: the property name.
        :param value: the entry to store.
        """
        self._data[key] = value

    def has(self, key: str) -> bool:
        """Check whether there is an entry for ``key``.

        :param key: the property name.
        :return: whether the key is present.
        """
        return key in self._data

    def remove(self, key: str) -> Optional[V]:
        """Remove the entry for ``key``, if there is one.

        :param key: the property name.
        :return: the removed entry, or ``None`` if there was none.
        """
        return self._data.pop(key, None)

    def keys(self) -> KeysView[str]:
        """Return a view of the keys in the table."""
        return self._data.keys()

    def items(self) -> ItemsView[str, V]:
        """Return a view of the entries in the table."""
        return self._data.items()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._data!r})"


class PropertyStore(KeyTable[Any]):
    """Values of the properties that are not bound."""


class AccessorTable(KeyTable[Accessor]):
    """Accessors for the properties that are bound."""


@dataclass
class RelaySubscriptions:
    """The subscriptions made on a target to relay one binding.

    :param channel: the channel of the target, on which both subscriptions
        were made.
    :param value_relay: relays the target's change event for the bound key.
    :param before_change_relay: relays the target's ``beforechange`` events
        for the bound key.
    """

    channel: EventChannel
    value_relay: Optional[SubscriptionHandle] = None
    before_change_relay: Optional[SubscriptionHandle] = None


class SubscriptionTable(KeyTable[RelaySubscriptions]):
    """Relay subscriptions for the properties that are bound."""
