from __future__ import annotations

from datetime import UTC, datetime
from dotenv import load_dotenv
import logging
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .realtime import router as realtime_router
from .routers.chat import router as chat_router
from .routers.compost import router as compost_router
from .routers.tasks import router as tasks_router
from ..config import get_settings
from ..observability.metrics import metrics_middleware_factory
from ..services.openrouter import GatewayConfigError, get_openrouter_client, model_config_for

load_dotenv()  # Load environment variables from .env if present (OPENROUTER_API_KEY, CORS_ORIGIN, etc.)

SERVICE_NAME = "Room of Requirements Backend"
VERSION = "1.0.0"

app = FastAPI(title="Room of Requirements API", version=VERSION)

logging.basicConfig(level=logging.INFO)

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

app.include_router(chat_router)
app.include_router(tasks_router)
app.include_router(compost_router)
app.include_router(realtime_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().cors_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _gateway_ready() -> bool:
    try:
        get_openrouter_client()
    except GatewayConfigError:
        return False
    return True


@app.get("/health")
def health():
    return {
        "status": "OK",
        "timestamp": _timestamp(),
        "service": SERVICE_NAME,
        "version": VERSION,
        "features": {
            "webSocket": "enabled",
            "openRouter": "connected" if _gateway_ready() else "error",
            "ai": model_config_for("general").id,
        },
    }


@app.get("/api/v1/test")
def api_test():
    return {
        "message": "Room of Requirements API is working!",
        "timestamp": _timestamp(),
        "ai": "connected" if _gateway_ready() else "disconnected",
    }


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


def run() -> None:
    """Console entry point: serve the app with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
