from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging
import time
from sqlalchemy import text
from rotaclock_core.config import Settings
from rotaclock_core.db import engine
from rotaclock_core.init_db import init_db
from rotaclock_core.logging_config import configure_logging
from .routes import displays, ready_status, timer

logger = logging.getLogger("rotaclock_api")
http_logger = logging.getLogger("rotaclock_api.http")

configure_logging()
settings = Settings()

app = FastAPI(title="Rotaclock API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


# Displays poll every few seconds; keep one line per request out of the main log.
@app.middleware("http")
async def request_logger(request, call_next):  # type: ignore
    start = time.time()
    path = request.url.path
    if path.startswith("/health") or path.startswith("/api/health"):
        return await call_next(request)
    response = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    http_logger.info("http %s %s -> %s (%dms)", request.method, path, response.status_code, duration_ms)
    return response

# Group API routes under /api for the frontend, while keeping root mounting for direct calls/scripts.
api_router = APIRouter(prefix="/api")
api_router.include_router(timer.router)
api_router.include_router(ready_status.router)
api_router.include_router(displays.router)
app.include_router(api_router)

app.include_router(timer.router)
app.include_router(ready_status.router)
app.include_router(displays.router)


@app.on_event("startup")
async def on_startup():
    init_db()
    logger.info("api.start version=%s ready_gate=%s", app.version, settings.ready_gate)


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("api.stop")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/health")
def api_health():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.warning("health.db fail err=%s", e)
        database = "unreachable"
    return {
        "backend": "ok",
        "database": database,
        "ready_gate": settings.ready_gate,
        "version": app.version,
    }


def run() -> None:  # pragma: no cover - process entry point
    import os
    import uvicorn
    uvicorn.run(
        "rotaclock_api.main:app",
        host=os.environ.get("ROTACLOCK_HOST", "0.0.0.0"),
        port=int(os.environ.get("ROTACLOCK_PORT", "8000")),
        log_config=None,
    )


__all__ = ["app", "settings", "run"]
