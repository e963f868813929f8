"""Pydantic models for configuring the event channel."""

from pydantic import BaseModel, Field


class ChannelConfig(BaseModel):
    r"""The configuration of an `.EventChannel`\ ."""

    max_depth: int | None = Field(
        default=None,
        ge=1,
        description=(
            """The maximum depth of nested notifications.

            Binding entities in a cycle makes notifications recurse without
            end. If this is set, `.DispatchDepthExceededError` is raised once
            notifications are nested this deeply. If it is left as ``None``,
            there is no limit.
            """
        ),
    )
