"""AceTrack - FastAPI entrypoint."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from acetrack.config import settings
from acetrack.db import db_shutdown, db_startup
from acetrack.seed import seed_super_admin
from acetrack.services.attendance import AttendanceError
from acetrack.services.news import NewsUnavailable
from acetrack.services.qr_payload import QRPayloadError
from acetrack.api import attendance, auth, events, news, organizations, subscriptions, users

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await db_startup()
        await seed_super_admin()
    except ServerSelectionTimeoutError as e:
        logger.error(
            "MongoDB is not running. Start it with: docker compose up -d (from project root)"
        )
        raise RuntimeError(
            "MongoDB connection failed. Start MongoDB (e.g. docker compose up -d)."
        ) from e
    yield
    await db_shutdown()


app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant event attendance tracking with QR check-in",
    version="0.1.0",
    lifespan=lifespan,
)


def _rejection(status_code: int, detail: str, reason: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "reason": reason})


@app.exception_handler(AttendanceError)
async def attendance_exception_handler(request: Request, exc: AttendanceError):
    return _rejection(exc.status_code, str(exc), exc.reason)


@app.exception_handler(QRPayloadError)
async def qr_payload_exception_handler(request: Request, exc: QRPayloadError):
    return _rejection(exc.status_code, str(exc), exc.reason)


@app.exception_handler(NewsUnavailable)
async def news_exception_handler(request: Request, exc: NewsUnavailable):
    return _rejection(exc.status_code, str(exc), exc.reason)


@app.exception_handler(PyMongoError)
async def store_exception_handler(request: Request, exc: PyMongoError):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return _rejection(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Attendance store is unavailable, try again",
        "store_unavailable",
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder([{k: v for k, v in e.items() if k != "ctx"} for e in errors])},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api", tags=["Users"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["Organizations"])
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(attendance.router, prefix="/api/events/{event_id}/attendance", tags=["Attendance"])
app.include_router(news.router, prefix="/api/news", tags=["News"])


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name}
