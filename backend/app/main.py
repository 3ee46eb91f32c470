from __future__ import annotations

import time
import uuid
import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.router import api_router
from app.api.ws import register_socketio_handlers
from app.core.settings import settings
from app.core.logging import setup_logging
from app.core.errors import error_payload, AppHTTPException
from app.core.request_id import set_request_id, get_request_id, ensure_request_id
from app.core.realtime import ConnectionRegistry, SocketIOTransport
from app.db.session import AsyncSessionLocal, create_all
from app.services.ai_service import AIResponder
from app.services.chat_relay import ChatRelay
from app.services.conversation_service import ConversationStore
from app.services.notification_relay import NotificationRelay
from app.services.notification_service import NotificationService, NotificationStore
from app.services.realtime_server import RealtimeServer

"""
Application (entrypoint ASGI : FastAPI + Socket.IO).

Rôle (fonctionnel) :
- Configure l’application HTTP (settings, CORS, middlewares, routers, handlers d’erreurs).
- Construit une seule fois le graphe temps réel :
  registre de présence -> transport Socket.IO -> relais chat / notifications -> RealtimeServer,
  exposé via app.state.realtime (et app.state.notification_service).
- Monte Socket.IO devant FastAPI (socketio.ASGIApp) : `uvicorn app.main:asgi_app`.

Ce fichier ne contient pas de logique métier :
- La logique est dans app.services
- Les routes et la liaison Socket.IO sont dans app.api
- Les composants transverses sont dans app.core
"""


class UTF8JSONResponse(JSONResponse):
    """Réponse JSON avec charset UTF-8 explicite (cohérent sur tous les endpoints)."""
    media_type = "application/json; charset=utf-8"


setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))

log = logging.getLogger("shopfronts")

# logger dédié observabilité HTTP (séparé du métier)
http_log = logging.getLogger("app.http")

SLOW_MS = int(getattr(settings, "SLOW_REQUEST_MS", 800))


def _split_origins(value: str) -> list[str]:
    """Parse une liste d’origines CORS depuis une string 'a,b,c'."""
    if not value:
        return []
    return [o.strip() for o in value.split(",") if o.strip()]


origins = _split_origins(getattr(settings, "CORS_ORIGINS", "")) or ["http://localhost:3000"]


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.DB_CREATE_ALL:
        await create_all()
        log.info("DB tables ensured (DB_CREATE_ALL)")
    yield


app = FastAPI(
    title=getattr(settings, "APP_NAME", "ShopFronts Realtime"),
    debug=getattr(settings, "DEBUG", False),
    default_response_class=UTF8JSONResponse,
    lifespan=lifespan,
)

# --- Temps réel (construit une fois, injecté via app.state) ---
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=origins)

registry = ConnectionRegistry()
transport = SocketIOTransport(sio)
conversation_store = ConversationStore(AsyncSessionLocal)
notification_store = NotificationStore(AsyncSessionLocal)

notification_relay = NotificationRelay(transport, registry, notification_store)
realtime = RealtimeServer(
    transport,
    registry=registry,
    chat=ChatRelay(transport, conversation_store, AIResponder(conversation_store)),
    notifications=notification_relay,
)

app.state.realtime = realtime
app.state.notification_service = NotificationService(notification_store, notification_relay)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-API-Key",
        "X-Request-Id",
    ],
)

# --- Routers ---
app.include_router(api_router)


# --- Middleware observabilité : request_id + timing + logs structurés ---
@app.middleware("http")
async def request_observability(request: Request, call_next):
    rid = ensure_request_id(request.headers.get("X-Request-Id"))
    request.state.request_id = rid

    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)

        if response is not None:
            response.headers["X-Request-Id"] = rid

        level = logging.WARNING if duration_ms >= SLOW_MS else logging.INFO
        http_log.log(
            level,
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": getattr(response, "status_code", None),
                "duration_ms": duration_ms,
                "client_ip": request.client.host if request.client else None,
            },
        )

        set_request_id(None)


# --- Error handlers : format standard, pas de stacktrace côté client ---
@app.exception_handler(AppHTTPException)
async def app_http_exception_handler(request: Request, exc: AppHTTPException):
    """Erreurs applicatives (AppHTTPException) -> payload standard."""
    rid = getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())
    detail = exc.detail if isinstance(exc.detail, dict) else {}

    code = str(detail.get("code", "HTTP_ERROR"))
    message = str(detail.get("message", "Erreur HTTP"))
    details = detail.get("details", None)

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=rid, details=details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Erreurs HTTP natives (404, 405, etc.) -> payload standard."""
    rid = getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())

    if isinstance(exc.detail, dict):
        code = str(exc.detail.get("code", "HTTP_ERROR"))
        message = str(exc.detail.get("message", "Erreur HTTP"))
        details = exc.detail.get("details", None)
    else:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        message = str(exc.detail)
        details = None

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=rid, details=details),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Erreurs de validation Pydantic -> 422 + details=exc.errors()."""
    rid = getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())
    return UTF8JSONResponse(
        status_code=422,
        content=error_payload(
            code="VALIDATION_ERROR",
            message="Requête invalide",
            status=422,
            request_id=rid,
            details=jsonable_errors(exc),
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Fallback : toute exception non gérée -> 500 + log serveur."""
    rid = getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())
    log.exception("Unhandled error: %s", exc)

    return UTF8JSONResponse(
        status_code=500,
        content=error_payload(
            code="INTERNAL_ERROR",
            message="Erreur interne du serveur",
            status=500,
            request_id=rid,
        ),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """exc.errors() peut contenir des objets non sérialisables (ctx.error) : on garde loc/msg/type."""
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


# --- Socket.IO devant FastAPI ---
if settings.ENABLE_WEBSOCKET:
    register_socketio_handlers(sio, realtime)
    asgi_app = socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=settings.WS_PATH.strip("/"))
else:
    asgi_app = app
