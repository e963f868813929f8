r"""Pydantic models to enable server configuration to be loaded from file.

The models in this module describe the entities an `.EntityServer` should
create, the bindings it should make between them, and the `.ChannelConfig` of
the channel they share. They are used by the `.cli` module to start servers
based on configuration files or strings, for example:

.. code-block:: json

    {
        "entities": {
            "knob": "propbind.example_entities:Knob",
            "dial": {"class": "propbind.example_entities:Dial", "values": {"units": "%"}}
        },
        "bindings": [
            {
                "source": "dial",
                "key": "reading",
                "target": "knob",
                "target_key": "position",
                "forward": "propbind.example_entities:fraction",
                "reverse": "propbind.example_entities:percent"
            }
        ],
        "channel": {"max_depth": 64}
    }
"""

from importlib import import_module
import re
from pydantic import (
    BaseModel,
    Field,
    ImportString,
    AliasChoices,
    field_validator,
    model_validator,
    ValidatorFunctionWrapHandler,
    WrapValidator,
)
from typing import Any, Annotated, Optional, TypeAlias
from collections.abc import Mapping, Sequence
from typing_extensions import Self

from ..config import ChannelConfig

PYTHON_EL_RE_STR = r"[a-zA-Z_][a-zA-Z0-9_]*"
IMPORT_REGEX = re.compile(
    rf"^{PYTHON_EL_RE_STR}(?:\.{PYTHON_EL_RE_STR})*:{PYTHON_EL_RE_STR}$"
)


class EntityImportFailure(BaseException):
    """Failed to import an entity class or transform. Raise with import traceback."""


def contain_import_errors(value: Any, handler: ValidatorFunctionWrapHandler) -> Any:  # noqa: DOC503
    """Prevent errors during import from causing odd validation errors.

    This is used to wrap the pydantic ImportString validator, and ensures that any
    module that won't import shows up with a single clear error.

    :param value: The value being validated.
    :param handler: The validator handler.

    :return: The validated value.

    :raises EntityImportFailure: if an import error occurs, with the stack trace
        from retrying the import.
    :raises Exception: In the unlikely event that the import error cannot be
        reproduced.
    """
    try:
        return handler(value)
    except Exception:
        if isinstance(value, str) and IMPORT_REGEX.match(value):
            module_name, object_name = value.split(":")
            try:
                module = import_module(module_name)
            except Exception as import_err:  # noqa: BLE001
                # Re-raise as a BaseException so pydantic doesn't wrap it.
                msg = f"[{type(import_err).__name__}] {import_err}"
                exc = EntityImportFailure(msg)
                raise exc.with_traceback(import_err.__traceback__) from None

            if not hasattr(module, object_name):
                msg = (
                    f"[ImportError] cannot import name '{object_name}' from "
                    f"'{module_name}'"
                )
                raise EntityImportFailure(msg) from None

        # If this was the wrong type, didn't match the regex, or somehow imported
        # fine then re-raise the original error.
        raise


EntityImportString = Annotated[
    ImportString,
    WrapValidator(contain_import_errors),
]


EntityName = Annotated[
    str,
    Field(min_length=1, pattern=r"^([a-zA-Z0-9\-_]+)$"),
]


class EntityConfig(BaseModel):
    r"""The information needed to add a `.PropertyEntity` to an `.EntityServer`\ ."""

    cls: EntityImportString = Field(
        validation_alias=AliasChoices("cls", "class"),
        description="The PropertyEntity subclass to create.",
    )

    values: Mapping[str, Any] = Field(
        default_factory=dict,
        description="Initial values, passed to the constructor of `cls`.",
    )


class BindingConfig(BaseModel):
    r"""A binding to make between two entities on an `.EntityServer`\ ."""

    source: EntityName = Field(description="The entity whose key is bound.")

    key: str = Field(min_length=1, description="The key on the source entity.")

    target: EntityName = Field(description="The entity that is bound to.")

    target_key: Optional[str] = Field(
        default=None,
        description="The key on the target entity, if it differs from `key`.",
    )

    forward: Optional[EntityImportString] = Field(
        default=None,
        description="Converts values written on the source for the target.",
    )

    reverse: Optional[EntityImportString] = Field(
        default=None,
        description="Converts values read from the target for the source.",
    )

    @model_validator(mode="after")
    def check_transforms(self) -> Self:
        """Check the transforms are both given, or both omitted, and are callable.

        :return: the validated model.

        :raises ValueError: if only one transform is given, or either is not
            callable.
        """
        if (self.forward is None) != (self.reverse is None):
            raise ValueError("Specify both `forward` and `reverse`, or neither.")
        for transform in (self.forward, self.reverse):
            if transform is not None and not callable(transform):
                raise ValueError(f"Transform {transform!r} is not callable.")
        return self


EntitiesConfig: TypeAlias = Mapping[EntityName, EntityConfig | EntityImportString]


class EntityServerConfig(BaseModel):
    r"""The configuration parameters for an `.EntityServer`\ ."""

    entities: EntitiesConfig = Field(
        description=(
            """A mapping of names to entity configurations.

            Each entity on the server must be given a name, which is the
            dictionary key. The value is either the class to be used, or an
            `.EntityConfig` object specifying the class and initial values.
            """
        ),
    )

    bindings: Sequence[BindingConfig] = Field(
        default_factory=list,
        description="Bindings to make, in order, once the entities exist.",
    )

    channel: ChannelConfig = Field(
        default_factory=ChannelConfig,
        description="Configuration of the event channel the entities share.",
    )

    @field_validator("entities", mode="after")
    @classmethod
    def check_entities(cls, entities: EntitiesConfig) -> EntitiesConfig:
        """Check that the entity configurations can be normalised.

        :param entities: The validated value of the field.

        :return: A copy of the input, with all values converted to
            `.EntityConfig` instances.
        """
        return normalise_entities_config(entities)

    @model_validator(mode="after")
    def check_binding_names(self) -> Self:
        """Check that every binding refers to configured entities.

        :return: the validated model.

        :raises ValueError: if a binding names an entity that isn't configured.
        """
        for binding in self.bindings:
            for name in (binding.source, binding.target):
                if name not in self.entities:
                    raise ValueError(
                        f"Binding of '{binding.key}' refers to '{name}', "
                        "which is not a configured entity."
                    )
        return self

    @property
    def entity_configs(self) -> Mapping[str, EntityConfig]:
        r"""A copy of the ``entities`` field where every value is an `.EntityConfig`\ ."""
        return normalise_entities_config(self.entities)


def normalise_entities_config(entities: EntitiesConfig) -> Mapping[str, EntityConfig]:
    r"""Ensure every entity is defined by an `.EntityConfig` object.

    :param entities: A mapping of names to entities, either classes or
        `.EntityConfig` objects.

    :return: A mapping of names to `.EntityConfig` objects.

    :raises ValueError: if a Python object is passed that's neither a `type` nor
        a `dict`\ .
    """
    normalised: dict[str, EntityConfig] = {}
    for k, v in entities.items():
        if isinstance(v, EntityConfig):
            normalised[k] = v
        elif isinstance(v, Mapping):
            normalised[k] = EntityConfig.model_validate(v)
        elif isinstance(v, type):
            normalised[k] = EntityConfig(cls=v)
        else:
            raise ValueError(
                "Entities must be specified either as a class or an EntityConfig."
            )
    return normalised
