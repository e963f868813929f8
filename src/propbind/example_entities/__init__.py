"""Example entities, used for testing and demonstration purposes."""

from propbind.entity import PropertyEntity
from propbind.typed import key_property


class Knob(PropertyEntity):
    """A knob whose position is kept between 0 and 1."""

    label: str = key_property(default="knob")
    "A name for the knob."

    @key_property
    def position(self) -> float:
        """The position of the knob, from 0 to 1."""
        return self.get("position", 0.0)

    @position.setter
    def _set_position(self, value: float) -> None:
        self.set("position", min(max(float(value), 0.0), 1.0))


class Dial(PropertyEntity):
    """A dial showing a reading, and the units it is in."""

    reading: float = key_property(default=0.0)
    "The value shown on the dial."

    units: str = key_property(default="")
    "The units of ``reading``."


def percent(fraction: float) -> float:
    """Convert a fraction to a percentage.

    :param fraction: a number, usually between 0 and 1.
    :return: ``fraction`` multiplied by 100.
    """
    return fraction * 100


def fraction(percentage: float) -> float:
    """Convert a percentage to a fraction.

    :param percentage: a number, usually between 0 and 100.
    :return: ``percentage`` divided by 100.
    """
    return percentage / 100
