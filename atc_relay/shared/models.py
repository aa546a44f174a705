"""Data models for the ATC relay."""

from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, Field


class RelayState(StrEnum):
    """Lifecycle of a single relayed request."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class RelayRequest(BaseModel):
    """Inbound request for one upstream stream."""

    request_id: Annotated[str, Field(description="Unique request identifier")]
    stream_id: Annotated[str, Field(min_length=1, description="Validated upstream stream identifier")]


class ServerStatusResponse(BaseModel):
    """Body of the status endpoint."""

    status: Annotated[str, Field(description="Liveness indicator")] = "ok"
    service: Annotated[str, Field(description="Service name")] = "atc-relay"
    upstream_base_url: Annotated[str, Field(description="Configured streaming origin")]


class Station(BaseModel):
    """A known upstream feed."""

    id: Annotated[str, Field(min_length=1, description="Upstream stream identifier")]
    name: Annotated[str, Field(description="City served by the feed")]
    iata: Annotated[str, Field(min_length=3, max_length=3, description="Airport IATA code")]
