r"""Relay property changes to websocket clients.

A websocket connected to an entity receives a message each time one of the
entity's properties changes, including keys that are bound to another entity
(their change notifications are relayed to the entity that is observed).
Messages follow the ``propertyStatus`` form of the ``webthingprotocol``:

.. code-block:: json

    {"messageType": "propertyStatus", "data": {"position": 0.5}}

Change notifications are published synchronously, from whatever code set the
property, so they can't ``await`` a slow client. They are instead put into a
bounded `anyio` memory stream, and a task sends them on to the websocket.
If a client falls more than `.WEBSOCKET_BUFFER_SIZE` messages behind,
further messages are dropped and a warning is logged.
"""

from __future__ import annotations
import logging
from typing import TYPE_CHECKING

from anyio import (
    BrokenResourceError,
    ClosedResourceError,
    WouldBlock,
    create_memory_object_stream,
    create_task_group,
)
from anyio.abc import ObjectReceiveStream, ObjectSendStream
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from .events import EventType, PropertyEvent

if TYPE_CHECKING:
    from .entity import PropertyEntity

_LOGGER = logging.getLogger(__name__)

WEBSOCKET_BUFFER_SIZE = 256
"""The number of messages that may be waiting to be sent to one websocket."""


def property_status_message(entity: PropertyEntity, key: str) -> dict:
    """Make the message describing the current value of a property.

    :param entity: the entity that changed.
    :param key: the property that changed.
    :return: a ``propertyStatus`` message.
    """
    return {"messageType": "propertyStatus", "data": {key: entity.get(key)}}


async def relay_notifications_to_websocket(
    websocket: WebSocket, receive_stream: ObjectReceiveStream
) -> None:
    """Relay objects from a stream to a websocket as JSON.

    :param websocket: the WebSocket we are communicating over.
    :param receive_stream: an `anyio.abc.ObjectReceiveStream` that will
        yield objects that we send over the websocket.
    """
    async with receive_stream:
        async for item in receive_stream:
            await websocket.send_json(jsonable_encoder(item))


async def wait_for_disconnect(
    websocket: WebSocket, send_stream: ObjectSendStream
) -> None:
    r"""Discard messages from the client until it disconnects.

    Closing ``send_stream`` afterwards ends `.relay_notifications_to_websocket`\ .

    :param websocket: the WebSocket we are communicating over.
    :param send_stream: the stream notifications are sent to.
    """
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await send_stream.aclose()


async def websocket_endpoint(entity: PropertyEntity, websocket: WebSocket) -> None:
    r"""Handle communication to a client via websocket.

    The entity is observed before the connection is accepted, so no change
    made after the client has connected is missed.

    :param entity: the entity being observed.
    :param websocket: the web socket that has been created.
    """
    send_stream, receive_stream = create_memory_object_stream[dict](
        WEBSOCKET_BUFFER_SIZE
    )

    def queue_message(event: PropertyEvent) -> None:
        try:
            message = property_status_message(entity, event.key)
        except Exception:  # noqa: BLE001
            # The change must not fail because a websocket is watching.
            _LOGGER.exception(
                "Could not read %r of %r for a websocket.", event.key, entity
            )
            return
        try:
            send_stream.send_nowait(message)
        except WouldBlock:
            _LOGGER.warning(
                "Websocket observing %r is too slow, dropped change of %r.",
                entity,
                event.key,
            )
        except (BrokenResourceError, ClosedResourceError):
            pass  # The client has gone; we are about to unsubscribe.

    handle = entity.on(EventType.CHANGE, queue_message)
    try:
        await websocket.accept()
        async with create_task_group() as tg:
            tg.start_soon(relay_notifications_to_websocket, websocket, receive_stream)
            tg.start_soon(wait_for_disconnect, websocket, send_stream)
    finally:
        entity.off(handle)
