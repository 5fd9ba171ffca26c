# backend/kpidb/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .apps.accounts.router import router as accounts_router
from .apps.audits.router import router as audits_router
from .apps.kpi.router import router as kpi_router
from .apps.notifications.router import router as notifications_router
from .apps.training.router import router as training_router
from .apps.workflow import TransitionError

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]


app = FastAPI(title="KPI Automation API", version="1.0.0")
cors_origins = _allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TransitionError)
async def transition_error_handler(request: Request, exc: TransitionError):
    logger.info(
        "Rejected state transition",
        extra={"path": request.url.path, "code": exc.code, "detail": exc.detail},
    )
    return JSONResponse(status_code=409, content={"detail": exc.detail, "code": exc.code})


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "KPI automation backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(accounts_router)
app.include_router(kpi_router)
app.include_router(training_router)
app.include_router(audits_router)
app.include_router(notifications_router)
