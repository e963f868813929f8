"""A submodule for custom propbind Exceptions."""


# An __all__ for this module is less than helpful, unless we have an
# automated check that everything's included.


class TargetReleasedError(ReferenceError):
    """The target of a binding no longer exists.

    Bindings hold only a weak reference to their target, so the target's
    lifetime is managed by whoever created it. If the target is garbage
    collected while still bound, reading, writing or notifying the bound key
    raises this error. Call `.PropertyEntity.unbind` before releasing a target
    to avoid it.
    """


class DispatchDepthExceededError(RecursionError):
    """Too many notifications were nested inside one another.

    This is only raised when an `.EventChannel` has been given a ``max_depth``.
    It usually means two entities have been bound to each other, directly or
    through a chain, so each change notification causes another one without
    end. Without a ``max_depth`` the same situation ends in a `RecursionError`
    from the interpreter.
    """


class NotAPropertyEntityError(TypeError):
    """A binding target is not a `.PropertyEntity`.

    Only other `.PropertyEntity` instances may be bound to, because the binding
    relies on their change notifications.
    """


class ReadOnlyPropertyError(AttributeError):
    """A property is read-only.

    No setter has been defined for this `.FunctionalKeyProperty`, so
    it may not be written to.
    """


class EntityNotFoundError(KeyError):
    """No entity has been added with the requested name.

    Raised by `.EntityServer` when looking up entities by name, and
    converted to a 404 response by the HTTP API.
    """
