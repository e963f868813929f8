r"""Typed accessors for the keys of a `.PropertyEntity`\ .

Every property of an entity may be read and written with the generic
`.PropertyEntity.get` and `.PropertyEntity.set` methods. A subclass may also
declare typed accessors for particular keys, using `.key_property`, which is
intentionally similar to Python's built in `property`:

.. code-block:: python

    import propbind as pb


    class Knob(pb.PropertyEntity):
        "A knob with a position between 0 and 1."

        label: str = pb.key_property(default="knob")
        "A simple property, stored under the key ``label``."

        @pb.key_property
        def position(self) -> float:
            "The position of the knob."
            return self.get("position", 0.0)

        @position.setter
        def _set_position(self, value: float) -> None:
            self.set("position", min(max(value, 0.0), 1.0))

``label`` behaves like an attribute that reads and writes the key ``label``.
``position`` runs its getter and setter every time it is used, and those
functions are also used when another entity is bound to ``position``, or when
``position`` is supplied to `.PropertyEntity.set_values`\ .

The engine looks up typed accessors with `.typed_getter` and `.typed_setter`,
and falls back to the generic methods when a class declares none for a key.
"""

from __future__ import annotations
import builtins
from functools import lru_cache
from types import EllipsisType
from typing import Any, Callable, Generic, TypeVar, overload, TYPE_CHECKING
from typing_extensions import Self

from .exceptions import ReadOnlyPropertyError

if TYPE_CHECKING:
    from .entity import PropertyEntity


Value = TypeVar("Value")
"""The value returned by a property."""

Owner = TypeVar("Owner", bound="PropertyEntity")
"""The `.PropertyEntity` instance on which a property is accessed."""


class OverspecifiedDefaultError(ValueError):
    """The default value has been specified more than once.

    This error is raised when `.key_property` is given more than one of
    ``default``, ``default_factory`` and a getter.
    """


class MissingDefaultError(ValueError):
    """A non-callable value was given where a getter or factory was expected."""


def default_factory_from_arguments(
    default: Any | EllipsisType = ...,
    default_factory: Callable[[], Any] | None = None,
) -> Callable[[], Any] | None:
    """Process default arguments to get a default factory function.

    Unlike a plain attribute, a key need not have a default: if neither
    argument is given, ``None`` is returned and the key is left unset until
    it is first written.

    Note that wrapping a ``default`` does not copy it, so mutable defaults
    are only safe if supplied as a factory function.

    :param default: the default value, or an ellipsis if not specified.
    :param default_factory: a function that returns the default value.
    :return: a function that returns the default value, or ``None``.
    :raises OverspecifiedDefaultError: if both are specified.
    :raises MissingDefaultError: if ``default_factory`` is not callable.
    """
    if default is not ... and default_factory is not None:
        raise OverspecifiedDefaultError()
    if default is not ...:
        return lambda: default
    if default_factory is None:
        return None
    if not callable(default_factory):
        raise MissingDefaultError("The default_factory must be callable.")
    return default_factory


class BaseKeyProperty(Generic[Owner, Value]):
    """A descriptor giving typed access to one key of an entity."""

    def __init__(self, key: str | None = None) -> None:
        """Initialise the descriptor.

        :param key: the key to access. If omitted, the attribute name is used.
        """
        self._key = key
        self._name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        """Take note of the attribute name, and use it as the default key.

        :param owner: the class on which we are defined.
        :param name: the attribute name.
        """
        self._name = name
        if self._key is None:
            self._key = name

    @builtins.property
    def key(self) -> str:
        """The key this descriptor reads and writes."""
        if self._key is None:
            raise AttributeError("key_property has not been added to a class.")
        return self._key

    @builtins.property
    def fget(self) -> Callable[[Owner], Value] | None:
        """A typed getter to use instead of `.PropertyEntity.get`, if any."""
        return None

    @builtins.property
    def fset(self) -> Callable[[Owner, Value], None] | None:
        """A typed setter to use instead of `.PropertyEntity.set`, if any."""
        return None

    @overload
    def __get__(self, obj: None, owner: type) -> Self: ...

    @overload
    def __get__(self, obj: Owner, owner: type) -> Value: ...

    def __get__(self, obj: Owner | None, owner: type | None = None) -> Value | Self:
        """Return the value of the key, or the descriptor if accessed on a class.

        :param obj: the entity, or ``None`` for class access.
        :param owner: the class on which the attribute is accessed.
        :return: the value, or this descriptor.
        """
        if obj is None:
            return self
        return self.instance_get(obj)

    def instance_get(self, obj: Owner) -> Value:
        """Read the key from the entity.

        :param obj: the entity.
        :return: the current value of the key.
        """
        return obj.get(self.key)

    def __set__(self, obj: Owner, value: Value) -> None:
        """Write the key on the entity.

        :param obj: the entity.
        :param value: the new value.
        """
        obj.set(self.key, value)


class DataKeyProperty(BaseKeyProperty[Owner, Value]):
    """A key that is read and written with the generic methods.

    Declaring a data property gives a key an attribute and, optionally, a
    default value, which is stored when the entity is created.
    """

    def __init__(
        self,
        key: str | None = None,
        default_factory: Callable[[], Value] | None = None,
    ) -> None:
        """Create a data property.

        :param key: the key to access, defaulting to the attribute name.
        :param default_factory: called to supply the initial value of the key
            for each new entity, or ``None`` to leave the key unset.
        """
        super().__init__(key)
        self.default_factory = default_factory


class FunctionalKeyProperty(BaseKeyProperty[Owner, Value]):
    """A key with a custom getter, and optionally a custom setter.

    These work very much like Python's `builtins.property`, except that the
    engine also uses them when the key is the target of a binding.
    """

    def __init__(
        self, fget: Callable[[Owner], Value], key: str | None = None
    ) -> None:
        """Set up a functional property.

        :param fget: the getter function, called when the key is read.
        :param key: the key to access, defaulting to the attribute name.
        """
        super().__init__(key)
        self._fget = fget
        self._fset: Callable[[Owner, Value], None] | None = None
        self.__doc__ = fget.__doc__

    @builtins.property
    def fget(self) -> Callable[[Owner], Value]:
        """The getter function."""
        return self._fget

    @builtins.property
    def fset(self) -> Callable[[Owner, Value], None] | None:
        """The setter function."""
        return self._fset

    def setter(self, fset: Callable[[Owner, Value], None]) -> Self:
        """Set the setter function of the property.

        This function returns the descriptor, so it may be used as a decorator.
        As with `builtins.property`, the setter may share the getter's name.
        If it does not, the function is returned instead, so that the class
        gets an ordinary method under the other name.

        :param fset: the new setter function.
        :return: this descriptor, or ``fset`` if the names differ.
        """
        self._fset = fset
        if fset.__name__ != self._fget.__name__:
            return fset  # type: ignore[return-value]
        return self

    def instance_get(self, obj: Owner) -> Value:
        """Get the value of the property.

        :param obj: the entity on which the attribute is accessed.
        :return: the value of the property.
        """
        return self._fget(obj)

    def __set__(self, obj: Owner, value: Value) -> None:
        """Set the value of the property.

        :param obj: the entity on which the attribute is accessed.
        :param value: the value of the property.

        :raises ReadOnlyPropertyError: if the property has no setter.
        """
        if self._fset is None:
            raise ReadOnlyPropertyError(f"Property {self.key} of {obj} has no setter.")
        self._fset(obj, value)


@overload
def key_property(
    getter: Callable[[Owner], Value],
) -> FunctionalKeyProperty[Owner, Value]: ...


@overload
def key_property(
    *,
    key: str | None = None,
    default: Value | EllipsisType = ...,
    default_factory: Callable[[], Value] | None = None,
) -> Value: ...


def key_property(
    getter: Callable[[Owner], Value] | EllipsisType = ...,
    *,
    key: str | None = None,
    default: Value | EllipsisType = ...,
    default_factory: Callable[[], Value] | None = None,
) -> Value | FunctionalKeyProperty[Owner, Value]:
    """Declare a typed accessor for a key of a `.PropertyEntity`.

    Used as a decorator, this creates a `.FunctionalKeyProperty`. Used as a
    field specifier, it creates a `.DataKeyProperty`. See the module
    documentation for examples.

    :param getter: a method returning the value of the key. This is supplied
        by using ``key_property`` as a decorator.
    :param key: the key to access, if it differs from the attribute name.
    :param default: the initial value of the key on new entities.
    :param default_factory: returns the initial value of the key. Use this
        for mutable values.
    :return: a property descriptor. When used as a field, the return type is
        annotated as the value type, so type checkers accept
        ``x: int = key_property(default=0)``.

    :raises MissingDefaultError: if a non-callable positional argument is
        given, which usually means ``default`` was not passed by keyword.
    :raises OverspecifiedDefaultError: if more than one of ``getter``,
        ``default`` and ``default_factory`` is given.
    """
    if getter is not ...:
        if not callable(getter):
            raise MissingDefaultError(
                "A non-callable getter was passed to `key_property`. Usually, "
                "this means the default value was not passed as a keyword "
                "argument, which is required."
            )
        if default_factory is not None or default is not ...:
            raise OverspecifiedDefaultError(
                "A getter was specified at the same time as a default. Only "
                "one of a getter, default, and default_factory may be used."
            )
        return FunctionalKeyProperty(getter, key=key)
    return DataKeyProperty(  # type: ignore[return-value]
        key=key,
        default_factory=default_factory_from_arguments(default, default_factory),
    )


@lru_cache(maxsize=None)
def key_properties(cls: type) -> tuple[BaseKeyProperty, ...]:
    """List the typed accessors declared on a class, including inherited ones.

    Where a subclass redeclares an attribute, only its own descriptor is
    listed.

    :param cls: a `.PropertyEntity` subclass.
    :return: the descriptors, most-derived first.
    """
    found: dict[str, BaseKeyProperty] = {}
    for klass in cls.__mro__:
        for name, attr in vars(klass).items():
            if name not in found:
                found[name] = attr
    return tuple(p for p in found.values() if isinstance(p, BaseKeyProperty))


@lru_cache(maxsize=None)
def typed_accessor(cls: type, key: str) -> BaseKeyProperty | None:
    """Find the typed accessor a class declares for a key.

    :param cls: a `.PropertyEntity` subclass.
    :param key: the key to look up.
    :return: the descriptor, or ``None`` if the class declares none.
    """
    for prop in key_properties(cls):
        if prop.key == key:
            return prop
    return None


def typed_getter(entity: PropertyEntity, key: str) -> Callable[[Any], Any] | None:
    """Return the typed getter an entity's class declares for a key, if any.

    :param entity: the entity.
    :param key: the key.
    :return: a function taking the entity, or ``None``.
    """
    prop = typed_accessor(type(entity), key)
    return None if prop is None else prop.fget


def typed_setter(
    entity: PropertyEntity, key: str
) -> Callable[[Any, Any], None] | None:
    """Return the typed setter an entity's class declares for a key, if any.

    :param entity: the entity.
    :param key: the key.
    :return: a function taking the entity and a value, or ``None``.
    """
    prop = typed_accessor(type(entity), key)
    return None if prop is None else prop.fset


def read_value(entity: PropertyEntity, key: str) -> Any:
    """Read a key, preferring the entity's typed getter.

    :param entity: the entity to read.
    :param key: the key to read.
    :return: the value.
    """
    fget = typed_getter(entity, key)
    if fget is not None:
        return fget(entity)
    return entity.get(key)


def write_value(entity: PropertyEntity, key: str, value: Any) -> None:
    """Write a key, preferring the entity's typed setter.

    :param entity: the entity to write.
    :param key: the key to write.
    :param value: the new value.
    """
    fset = typed_setter(entity, key)
    if fset is not None:
        fset(entity, value)
    else:
        entity.set(key, value)
