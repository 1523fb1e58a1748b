"""FastAPI surface for managing endpoints and relaying live updates."""

from __future__ import annotations

import asyncio
from typing import Any, Iterator

from fastapi import Depends, FastAPI, WebSocket
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

import seatwatch.selectors as selectors
from seatwatch.errors import InvalidUrlError
from seatwatch.logging_config import get_logger
from seatwatch.pipeline import TicketPipeline, extract_event_id
from seatwatch.poller import TicketPoller
from seatwatch.storage import repo
from seatwatch.storage.models_sql import MonitoredEndpoint

LOGGER = get_logger(__name__)


class AddUrlPayload(BaseModel):
    url: str = Field(..., description="Marketplace event page URL.")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(
    pipeline: TicketPipeline,
    session_factory: sessionmaker[Session],
    *,
    poller: TicketPoller | None = None,
) -> FastAPI:
    """Build the API around an existing pipeline context and session factory."""

    app = FastAPI(title="Seatwatch")
    updater = poller or TicketPoller(pipeline, session_factory)
    broadcaster = pipeline.context.broadcaster

    def get_session() -> Iterator[Session]:
        with session_factory() as session:
            yield session

    def _lookup(session: Session, endpoint_id: int) -> MonitoredEndpoint | None:
        return repo.get_endpoint(session, endpoint_id)

    @app.get("/healthz")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/tickets/url")
    def add_url(payload: AddUrlPayload, session: Session = Depends(get_session)) -> Any:
        url = payload.url.strip()
        if not selectors.EVENT_URL_PATTERN.match(url):
            return _error(400, "Invalid Ticketmaster URL")
        try:
            event_id = extract_event_id(url)
        except InvalidUrlError:
            return _error(400, "Could not extract event ID from URL")
        endpoint, created = repo.upsert_endpoint(session, url, event_id)
        session.commit()
        if created:
            LOGGER.info("Registered endpoint %s (event %s)", url, event_id)
        return {"success": True, "ticketUrl": endpoint.to_dict()}

    @app.get("/api/tickets")
    def list_tickets(session: Session = Depends(get_session)) -> dict[str, Any]:
        return {"success": True, "data": [endpoint.to_dict() for endpoint in repo.list_endpoints(session)]}

    @app.get("/api/tickets/{endpoint_id}")
    def get_ticket(endpoint_id: int, session: Session = Depends(get_session)) -> Any:
        endpoint = _lookup(session, endpoint_id)
        if endpoint is None:
            return _error(404, "Not found")
        return {"success": True, "data": endpoint.to_dict()}

    @app.get("/api/tickets/{endpoint_id}/stadium")
    def get_stadium(endpoint_id: int, session: Session = Depends(get_session)) -> Any:
        endpoint = _lookup(session, endpoint_id)
        if endpoint is None:
            return _error(404, "Not found")
        stadium = endpoint.stadium
        return {
            "success": True,
            "data": {"stadium": stadium, "lastUpdated": (stadium or {}).get("lastUpdated")},
        }

    @app.get("/api/tickets/{endpoint_id}/changes")
    def get_changes(endpoint_id: int, session: Session = Depends(get_session)) -> Any:
        endpoint = _lookup(session, endpoint_id)
        if endpoint is None:
            return _error(404, "Not found")
        data = endpoint.to_dict()
        return {"success": True, "data": {"changes": data["changes"], "lastChecked": data["lastChecked"]}}

    @app.post("/api/tickets/{endpoint_id}/fetch")
    async def fetch_tickets(endpoint_id: int, session: Session = Depends(get_session)) -> Any:
        endpoint = _lookup(session, endpoint_id)
        if endpoint is None:
            return _error(404, "Not found")
        try:
            result, _ = await updater.update_endpoint(session, endpoint)
        except InvalidUrlError as exc:
            session.rollback()
            return _error(400, str(exc))
        except Exception as exc:
            session.rollback()
            LOGGER.error("Failed to update tickets for %s: %s", endpoint_id, exc)
            return _error(500, str(exc))
        return {"success": True, "data": endpoint.to_dict(), "result": result.to_dict()}

    @app.websocket("/ws/events/{event_id}")
    async def event_updates(websocket: WebSocket, event_id: str) -> None:
        await websocket.accept()
        subscription = broadcaster.subscribe(event_id)
        LOGGER.info("Client subscribed to event %s", event_id)

        async def _forward() -> None:
            async for payload in subscription:
                await websocket.send_json(payload)

        forwarder = asyncio.create_task(_forward())
        try:
            while (await websocket.receive())["type"] != "websocket.disconnect":
                continue
            LOGGER.info("Client disconnected from event %s", event_id)
        finally:
            forwarder.cancel()
            broadcaster.unsubscribe(subscription)

    return app
