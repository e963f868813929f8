"""The record describing where a bound property is stored."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, TYPE_CHECKING
from weakref import ref

from .exceptions import TargetReleasedError

if TYPE_CHECKING:
    from .entity import PropertyEntity


Transform = Callable[[Any], Any]
"""A function converting a value on its way across a binding."""


def identity(value: Any) -> Any:
    """Return ``value`` unchanged.

    :param value: any value.
    :return: the same value.
    """
    return value


@dataclass
class Accessor:
    """Delegate a property's storage to a key of another entity.

    The source entity owns the accessor, but the accessor does not own its
    target: only a weak reference is kept, so binding to an entity does not
    keep it alive.

    :param target_ref: a weak reference to the target entity.
    :param target_key: the key on the target that stores the value.
    :param forward: applied to values written on the source before they are
        set on the target.
    :param reverse: applied to values read from the target before they are
        returned from the source.
    """

    target_ref: ref
    target_key: str
    forward: Transform = field(default=identity)
    reverse: Transform = field(default=identity)

    @classmethod
    def to(cls, target: PropertyEntity, target_key: str) -> Accessor:
        """Create an accessor for ``target_key`` on ``target``.

        :param target: the entity to delegate to.
        :param target_key: the key on ``target``.
        :return: an accessor with identity transforms.
        """
        return cls(ref(target), target_key)

    @property
    def target(self) -> PropertyEntity:
        """The entity this accessor delegates to.

        :raises TargetReleasedError: if the target has been garbage collected.
        """
        target = self.target_ref()
        if target is None:
            raise TargetReleasedError(
                f"The entity bound for '{self.target_key}' no longer exists."
            )
        return target
