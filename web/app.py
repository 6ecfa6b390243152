"""FastAPI application for the FileShare web gateway."""

import base64
import binascii
import time
import uuid
from typing import Optional, Set

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from common.logging_config import get_logger
from web import config
from web.gateway import UpstreamSession
from web.schemas import (
    ConnectServerEvent,
    HealthResponse,
    MessageEvent,
    SendCommandEvent,
    UploadChunkDataEvent,
    incoming_event_adapter,
)

logger = get_logger(__name__)

app = FastAPI(
    title="FileShare Web Gateway",
    description="Bridges browser WebSocket sessions to the FileShare TCP server",
    version="1.0.0"
)

active_sessions: Set[UpstreamSession] = set()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", connections=len(active_sessions))


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    One browser session. Events are JSON objects with a 'type' field.
    """
    await websocket.accept()
    client_id = str(uuid.uuid4())[:8]
    logger.info(f"New web client connected: {client_id}")

    async def emit(event: BaseModel) -> None:
        await websocket.send_json(event.model_dump(exclude_none=True))

    session: Optional[UpstreamSession] = None
    try:
        while True:
            raw = await websocket.receive_json()
            try:
                event = incoming_event_adapter.validate_python(raw)
            except ValidationError as e:
                logger.warning(f"Invalid event from {client_id}: {e.error_count()} error(s)")
                await emit(MessageEvent(type="server-message", message="ERROR:Invalid event"))
                continue

            if isinstance(event, ConnectServerEvent):
                if session is not None:
                    await session.close()
                session = UpstreamSession(config.UPSTREAM_HOST, config.UPSTREAM_PORT, emit, active_sessions)
                try:
                    await session.open(event)
                except OSError as e:
                    logger.error(f"Cannot reach FileShare server for {event.username}: {e}")
                    session = None
                    await emit(MessageEvent(
                        type="connection-error",
                        message="Cannot connect to server. Please ensure the FileShare server is running.",
                    ))

            elif isinstance(event, SendCommandEvent):
                if session is not None and session.is_open:
                    await session.send_command(event.command)

            elif isinstance(event, UploadChunkDataEvent):
                if session is None or not session.is_open:
                    continue
                try:
                    data = base64.b64decode(event.data, validate=True)
                except (binascii.Error, ValueError):
                    await emit(MessageEvent(type="server-message", message="ERROR:Invalid chunk encoding"))
                    continue
                await session.send_chunk(data)

    except WebSocketDisconnect:
        logger.info(f"Web client disconnected: {client_id}")
    finally:
        if session is not None:
            await session.close()
