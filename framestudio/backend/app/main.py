import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .api.routes import (
    auth,
    classes,
    class_types,
    instructor,
    misc,
    packages,
    payments,
    public,
    reservations,
    student,
    users,
    waitlist,
)
from .db.session import Base, engine, SessionLocal
from .config import get_settings
from .core.logging import configure_logging
from .services.admin import ensure_admin_exists

logger = logging.getLogger(__name__)

app = FastAPI(title="FrameStudio API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (
    auth,
    classes,
    class_types,
    reservations,
    instructor,
    student,
    waitlist,
    packages,
    payments,
    users,
    public,
    misc,
):
    app.include_router(module.router, prefix="/api/v1")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path, "method": request.method})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def startup_event() -> None:
    configure_logging()
    Base.metadata.create_all(bind=engine)
    settings = get_settings()
    with SessionLocal() as session:
        ensure_admin_exists(session, settings.default_admin_email, settings.default_admin_password)
