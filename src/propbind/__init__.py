r"""propbind.

This is the top level module for propbind, a library of entities whose
properties may be observed, and bound to the properties of other entities.

This module contains a number of convenience imports and is intended to be
imported using:

.. code-block:: python

    import propbind as pb

Symbols in the top-level module mostly exist elsewhere in the package, but
should be imported from here as a preference, to ensure code does not break
if modules are rearranged.
"""

from .entity import PropertyEntity
from .binding import Binding
from .typed import key_property
from .events import EventChannel, EventType, PropertyEvent, default_channel
from .notifier import change_event_name
from .config import ChannelConfig
from . import exceptions

# The symbols in __all__ are part of our public API.
# They are imported when using `import propbind as pb`.
__all__ = [
    "PropertyEntity",
    "Binding",
    "key_property",
    "EventChannel",
    "EventType",
    "PropertyEvent",
    "default_channel",
    "change_event_name",
    "ChannelConfig",
    "exceptions",
]
