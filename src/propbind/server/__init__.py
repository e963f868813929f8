"""Code supporting the propbind server.

propbind wraps a `fastapi.FastAPI` application in an `.EntityServer`, which
exposes the properties of named `.PropertyEntity` instances over HTTP, and
pushes their change notifications to websocket clients.

Entities are not thread safe. Every route is therefore an ``async`` function,
so that all reads, writes and notifications happen in the event loop thread.
"""

from __future__ import annotations
from collections.abc import Mapping
import logging
import re
from types import MappingProxyType
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Request, WebSocket
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..binding import Binding
from ..entity import PropertyEntity
from ..events import EventChannel
from ..exceptions import EntityNotFoundError
from ..websockets import websocket_endpoint
from .config_model import BindingConfig, EntityServerConfig

_LOGGER = logging.getLogger(__name__)

# Each name should be made of alphanumeric characters, hyphen, or underscore.
NAME_REGEX = re.compile(r"^([a-zA-Z0-9\-_]+)$")


class EntityServer:
    """Use FastAPI to serve `.PropertyEntity` instances.

    The server keeps a strong reference to each entity added to it, so
    bindings between them (which only reference their targets weakly) stay
    valid for the lifetime of the server.
    """

    def __init__(self, channel: Optional[EventChannel] = None) -> None:
        """Initialise a propbind server.

        :param channel: the event channel used by entities created with
            `.EntityServer.from_config`. A new channel is created by default.
        """
        self.app = FastAPI()
        self.set_cors_middleware()
        self.channel = channel if channel is not None else EventChannel()
        self._entities: dict[str, PropertyEntity] = {}
        self.add_exception_handlers()
        self.add_entity_routes()

    app: FastAPI

    @classmethod
    def from_config(cls, config: EntityServerConfig | Mapping) -> EntityServer:
        r"""Create a server, its entities and their bindings from configuration.

        :param config: an `.EntityServerConfig`, or a dictionary that will be
            validated as one.

        :return: an `.EntityServer` with the configured entities added and
            bound. The server will not be started by this function.
        """
        if not isinstance(config, EntityServerConfig):
            config = EntityServerConfig.model_validate(config)
        server = cls(channel=EventChannel.from_config(config.channel))
        for name, entity_config in config.entity_configs.items():
            entity = entity_config.cls(entity_config.values, channel=server.channel)
            server.add_entity(name, entity)
        for binding in config.bindings:
            server.bind(binding)
        return server

    def set_cors_middleware(self) -> None:
        """Configure the server to allow requests from other origins."""
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @property
    def entities(self) -> Mapping[str, PropertyEntity]:
        """Return a dictionary of all the entities.

        :return: a read-only mapping of names to entities.
        """
        return MappingProxyType(self._entities)

    def entity(self, name: str) -> PropertyEntity:
        """Look up an entity by name.

        :param name: the name the entity was added with.
        :return: the entity.

        :raises EntityNotFoundError: if there is no entity with that name.
        """
        try:
            return self._entities[name]
        except KeyError:
            raise EntityNotFoundError(name) from None

    def add_entity(self, name: str, entity: PropertyEntity) -> PropertyEntity:
        """Add an entity to the server.

        :param name: The name to use for the entity. This will be part of the URL
            used to access it, and must only contain alphanumeric characters,
            hyphens and underscores.
        :param entity: The entity to add.

        :return: the entity that was added.

        :raise ValueError: if ``name`` contains invalid characters.
        :raise KeyError: if an entity has already been added as ``name``.
        :raise TypeError: if ``entity`` is not a `.PropertyEntity`.
        """
        if not isinstance(name, str):
            raise TypeError("Entity names must be strings.")
        if NAME_REGEX.match(name) is None:
            msg = (
                f"'{name}' contains unsafe characters. Use only alphanumeric "
                "characters, hyphens and underscores"
            )
            raise ValueError(msg)
        if name in self._entities:
            raise KeyError(f"{name} has already been added to this server.")
        if not isinstance(entity, PropertyEntity):
            raise TypeError(f"{entity!r} is not a PropertyEntity.")
        self._entities[name] = entity
        return entity

    def bind(self, config: BindingConfig) -> Binding:
        """Bind a key of one entity on the server to a key of another.

        :param config: describes the entities, keys and transforms.
        :return: the handle of the new binding.

        :raises EntityNotFoundError: if either entity has not been added.
        """
        source = self.entity(config.source)
        target = self.entity(config.target)
        binding = source.bind_to(config.key, target, config.target_key)
        if config.forward is not None and config.reverse is not None:
            binding.transform(config.forward, config.reverse)
        _LOGGER.info(
            "Bound %s.%s to %s.%s",
            config.source,
            config.key,
            config.target,
            binding.target_key,
        )
        return binding

    def add_exception_handlers(self) -> None:
        """Return 404 responses for entities that don't exist."""

        @self.app.exception_handler(EntityNotFoundError)
        async def entity_not_found(
            request: Request, exc: EntityNotFoundError
        ) -> JSONResponse:
            return JSONResponse(
                status_code=404,
                content={"detail": f"No entity named {exc.args[0]!r}."},
            )

    def add_entity_routes(self) -> None:
        """Add endpoints to read, write and observe the entities' properties."""
        server = self

        @self.app.get("/entities/")
        async def entity_names() -> list[str]:
            """List the names of the entities on this server.

            :return: the names, in the order they were added.
            """
            return list(server.entities.keys())

        @self.app.get("/entities/{name}/")
        async def get_properties(name: str) -> Any:
            """Get every property of an entity.

            :param name: the entity name.
            :return: a dictionary of keys and values.
            """
            return jsonable_encoder(server.entity(name).get_properties())

        @self.app.get("/entities/{name}/{key}")
        async def get_property(name: str, key: str) -> Any:
            """Get one property of an entity.

            :param name: the entity name.
            :param key: the property name.
            :return: the value of the property.

            :raises HTTPException: if the entity has no such property.
            """
            entity = server.entity(name)
            if key not in entity.get_keys():
                raise HTTPException(
                    status_code=404, detail=f"{name} has no property {key!r}."
                )
            return jsonable_encoder(entity.get(key))

        @self.app.put("/entities/{name}/{key}")
        async def set_property(name: str, key: str, value: Any = Body()) -> Any:
            """Set one property of an entity.

            The value is set using the entity's typed setter for ``key``, if
            it has one, so it may be adjusted before it is stored.

            :param name: the entity name.
            :param key: the property name.
            :param value: the new value, as the JSON request body.
            :return: the value of the property after it has been set.
            """
            entity = server.entity(name)
            entity.set_values({key: value})
            return jsonable_encoder(entity.get(key))

        @self.app.websocket("/entities/{name}/ws")
        async def observe_entity(name: str, websocket: WebSocket) -> None:
            """Push the entity's property changes to a websocket client.

            :param name: the entity name.
            :param websocket: is supplied automatically by FastAPI.
            """
            if name not in server.entities:
                await websocket.close(code=1008)
                return
            await websocket_endpoint(server.entity(name), websocket)
