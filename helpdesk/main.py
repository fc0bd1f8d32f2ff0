import fcntl
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpdesk.config import settings
from helpdesk.logging_config import setup_logging
from helpdesk.routers.auth import router as auth_router
from helpdesk.routers.users import router as users_router
from helpdesk.routers.tasks import router as tasks_router
from helpdesk.routers.lookups import (
    device_types_router,
    locations_router,
    problem_types_router,
    statuses_router,
    tags_router,
)
from helpdesk.services.scheduler import setup_scheduler

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Only the first worker to grab the lock runs the maintenance scheduler.
    lock_file = "/tmp/helpdesk_scheduler.lock"
    lock_fd = None
    scheduler = None

    if settings.BAN_PURGE_ENABLED:
        try:
            lock_fd = open(lock_file, "w")
            fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            logger.info("Process %s acquired scheduler lock; starting APScheduler", os.getpid())
            scheduler = setup_scheduler()
        except OSError:
            logger.info("Process %s: another worker runs the scheduler", os.getpid())
            if lock_fd:
                lock_fd.close()
                lock_fd = None

    yield

    if scheduler:
        scheduler.shutdown(wait=True)
    if lock_fd:
        fcntl.flock(lock_fd, fcntl.LOCK_UN)
        lock_fd.close()


app = FastAPI(
    lifespan=lifespan,
    title="Helpdesk API",
    description="Customer service tickets with tags, lookups and permission-gated access",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# Every error leaves the API as {"error": message}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(tasks_router)
app.include_router(locations_router)
app.include_router(device_types_router)
app.include_router(problem_types_router)
app.include_router(statuses_router)
app.include_router(tags_router)

@app.get("/")
def root():
    return {"message": "Helpdesk API running"}
