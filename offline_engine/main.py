"""
Offline Engine host - FastAPI application

Embeds the engine as a local intercepting proxy for the configured origin.
Lifecycle, push, sync and message events are exposed under /engine; every
other path is an intercepted request.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request as HttpRequest
from fastapi.responses import Response as HttpResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from config.settings import settings
from offline_engine.cache.core import request_key
from offline_engine.engine import OfflineEngine, get_engine
from offline_engine.exceptions import NetworkError, StorageError
from offline_engine.fetch import NAVIGATE, Request, Response
from offline_engine.messages import MessageChannel

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("engine.host")

app = FastAPI(
    title=settings.engine_name,
    description="Offline-first request interception and cache engine",
    version=settings.engine_version,
)

# Request headers that belong to the hop between the page and this host
_HOP_HEADERS = {"host", "content-length", "connection", "transfer-encoding"}
_WIRE_HEADERS = {"content-length", "content-encoding", "transfer-encoding", "connection"}


class ClientWindow(BaseModel):
    """A page window registered by the host UI."""
    url: str
    controlled: bool = False


def to_engine_request(request: HttpRequest, path: str, body: bytes, origin: str) -> Request:
    url = "/" + path
    if request.url.query:
        url += "?" + request.url.query
    headers = {k: v for k, v in request.headers.items() if k.lower() not in _HOP_HEADERS}
    mode = NAVIGATE if request.headers.get("sec-fetch-mode") == NAVIGATE else "cors"
    return Request(
        url=request_key(url, origin),
        method=request.method,
        headers=headers,
        body=body or None,
        mode=mode,
    )


def to_http_response(response: Response) -> HttpResponse:
    headers = {k: v for k, v in response.headers.items() if k.lower() not in _WIRE_HEADERS}
    return HttpResponse(content=response.body, status_code=response.status, headers=headers)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "engine": settings.engine_name}


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {
        "name": settings.engine_name,
        "version": settings.engine_version,
        "generation": settings.generation(),
    }


@app.get("/engine/stats")
def engine_stats(engine: OfflineEngine = Depends(get_engine)):
    """Lifecycle state, namespace sizes and strategy counters."""
    try:
        return engine.get_stats()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Cache store unavailable: {e}")


# ===== LIFECYCLE =====

@app.post("/engine/install")
def install(engine: OfflineEngine = Depends(get_engine)):
    """Precache the asset list; activates immediately on success."""
    engine.install()
    return {"state": engine.lifecycle.state.value}


@app.post("/engine/activate")
def activate(engine: OfflineEngine = Depends(get_engine)):
    """Reclaim old cache generations and claim open clients."""
    engine.activate()
    return {"state": engine.lifecycle.state.value, "namespaces": engine.registry.names()}


# ===== NOTIFICATIONS =====

@app.post("/engine/push")
async def push(request: HttpRequest, engine: OfflineEngine = Depends(get_engine)):
    """Deliver a push message; the raw body is the payload."""
    raw = await request.body()
    notification = await run_in_threadpool(engine.push, raw or None)
    if notification is None:
        raise HTTPException(status_code=500, detail="Notification could not be shown")
    return notification.to_dict()


@app.get("/engine/notifications")
def list_notifications(engine: OfflineEngine = Depends(get_engine)):
    return [n.to_dict() for n in engine.notifications.all()]


@app.post("/engine/notifications/{notification_id}/click")
def click_notification(
    notification_id: int,
    action: Optional[str] = None,
    engine: OfflineEngine = Depends(get_engine),
):
    notification = engine.notifications.get(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
    client = engine.notification_click(notification, action)
    return {
        "notification": notification.to_dict(),
        "client": client.to_dict() if client else None,
    }


@app.post("/engine/clients")
def register_client(window: ClientWindow, engine: OfflineEngine = Depends(get_engine)):
    return engine.clients.add(window.url, controlled=window.controlled).to_dict()


@app.get("/engine/clients")
def list_clients(engine: OfflineEngine = Depends(get_engine)):
    return [c.to_dict() for c in engine.clients.match_all(include_uncontrolled=True)]


# ===== DEFERRED TASKS =====

@app.post("/engine/sync/{tag}/stage")
def stage_sync_payload(
    tag: str,
    payload: Any = Body(...),
    engine: OfflineEngine = Depends(get_engine),
):
    """Stage a payload to upload the next time `tag` syncs."""
    try:
        key = engine.tasks.stage(tag, payload)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Cache store unavailable: {e}")
    return {"tag": tag, "key": key}


@app.post("/engine/sync/{tag}")
def run_sync(tag: str, engine: OfflineEngine = Depends(get_engine)):
    """Connectivity restored: run the one-shot task for `tag`."""
    outcome = engine.sync(tag)
    return {"tag": tag, "outcome": outcome.value if outcome else "failed"}


@app.post("/engine/periodic-sync/{tag}")
def run_periodic_sync(tag: str, engine: OfflineEngine = Depends(get_engine)):
    """Scheduled refresh for `tag`."""
    outcome = engine.periodic_sync(tag)
    return {"tag": tag, "outcome": outcome.value if outcome else "failed"}


# ===== MESSAGES =====

@app.post("/engine/messages")
def post_message(message: Dict[str, Any] = Body(...), engine: OfflineEngine = Depends(get_engine)):
    """Post a client message; replies sent over the reply port are returned."""
    channel = MessageChannel()
    engine.message(message, channel)
    return {"replies": channel.replies}


# ===== INTERCEPTION =====

@app.api_route(
    "/{path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def intercept(path: str, request: HttpRequest, engine: OfflineEngine = Depends(get_engine)):
    """Route an intercepted request through the engine."""
    body = await request.body()
    engine_request = to_engine_request(request, path, body, engine.settings.origin)
    response = await run_in_threadpool(engine.fetch, engine_request)

    if response is None:
        # Bypassed (non-GET) requests go to the network untouched
        try:
            response = await run_in_threadpool(engine.transport.fetch, engine_request)
        except NetworkError as e:
            logger.warning(f"Forwarding failed: {engine_request.method} {engine_request.url} - {e}")
            return HttpResponse(status_code=502)
        except Exception as e:
            logger.error(f"Transport error forwarding {engine_request.url}: {e}", exc_info=True)
            return HttpResponse(status_code=502)

    return to_http_response(response)
