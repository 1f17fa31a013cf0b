import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, ProgrammingError

# Models must be imported before create_all so every table is registered on Base
from . import models  # noqa: F401
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.clinical import router as clinical_router
from .domain.scheduling import router as scheduling_router
from .errors import ClinicError, StorageUnavailable

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# arq and redis are chatty at INFO
logging.getLogger("arq").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Clinic scheduling API starting")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
    except (ProgrammingError, IntegrityError) as e:
        # Two uvicorn workers can race on CREATE TABLE. On PostgreSQL the loser
        # sees either the table or a duplicate pg_type row.
        error_msg = str(e)
        if "already exists" not in error_msg and "duplicate key" not in error_msg:
            raise
        logger.info("Tables already created by another worker")
    yield
    logger.info("Clinic scheduling API stopped")


app = FastAPI(title="Clinic Scheduling API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    """Business rule failures are returned to the caller with a stable error code"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")

    headers = {"Retry-After": "1"} if isinstance(exc, StorageUnavailable) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Malformed bodies and query strings get the same shape as InvalidArgument.
    A malformed Authorization header is reported as 401 instead.
    """
    errors = jsonable_encoder(exc.errors(), custom_encoder={ValueError: str})
    if any("authorization" in str(error.get("loc", "")).lower() for error in errors):
        logger.warning(f"Rejected {request.url.path}: malformed Authorization header")
        return JSONResponse(status_code=401, content={"detail": "Invalid authentication token"})

    logger.warning(f"Invalid request to {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content={"detail": errors, "code": "invalid_argument"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - unhandled {type(e).__name__}: {e}")
        raise
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(scheduling_router)
app.include_router(clinical_router)


@app.get("/")
def root():
    return {"message": "Clinic Scheduling API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
