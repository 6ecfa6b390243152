"""Pydantic schemas for the gateway's WebSocket events and HTTP responses."""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class ConnectServerEvent(BaseModel):
    """Browser asks for an upstream session (login, signup or recovery)."""
    type: Literal["connect-server"]
    username: str
    password: str = ""
    auth_mode: Literal["LOGIN", "SIGNUP", "RECOVER"] = "LOGIN"
    security_answer: Optional[str] = None
    new_password: Optional[str] = None


class SendCommandEvent(BaseModel):
    """One protocol line to forward upstream."""
    type: Literal["send-command"]
    command: str


class UploadChunkDataEvent(BaseModel):
    """Raw chunk bytes (base64) following an UPLOAD_CHUNK line."""
    type: Literal["upload-chunk-data"]
    data: str


IncomingEvent = Annotated[
    Union[ConnectServerEvent, SendCommandEvent, UploadChunkDataEvent],
    Field(discriminator="type"),
]

incoming_event_adapter = TypeAdapter(IncomingEvent)


class MessageEvent(BaseModel):
    """connection-success, connection-error, server-message and disconnected."""
    type: Literal["connection-success", "connection-error", "server-message", "disconnected"]
    message: Optional[str] = None


class BinaryDataEvent(BaseModel):
    """One downloaded block, base64 encoded."""
    type: Literal["binary-data"] = "binary-data"
    data: str
    bytes: int


class HealthResponse(BaseModel):
    """Response model for the health endpoint."""
    status: str
    connections: int
