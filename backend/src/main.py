import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from auth.interfaces.routes import router as auth_router
from comments.interfaces.routes import router as comments_router
from dashboard.interfaces.routes import router as dashboard_router
from documents.infrastructure.blob_store import HttpBlobStore
from documents.interfaces.routes import router as documents_router
from shared.config import settings
from shared.dependencies import get_blob_store
from shared.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    StoreTimeoutError,
    ValidationError,
)
from shared.infrastructure.database import engine
from shared.infrastructure.redis import get_redis_pool
from shared.logging import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Document approval service starting")
    yield
    blobs = get_blob_store()
    if isinstance(blobs, HttpBlobStore):
        await blobs.aclose()
    await engine.dispose()
    redis = get_redis_pool()
    await redis.aclose()


app = FastAPI(
    title="Document Approval Service",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(documents_router)
app.include_router(comments_router)

if settings.STORAGE_BACKEND == "local":
    app.mount("/files", StaticFiles(directory=settings.STORAGE_DIR, check_dir=False), name="files")


@app.exception_handler(ValidationError)
async def validation_handler(request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(ConflictError)
async def conflict_handler(request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(AuthenticationError)
async def auth_error_handler(request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"success": False, "detail": exc.message})


@app.exception_handler(AuthorizationError)
async def forbidden_handler(request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(StoreTimeoutError)
async def store_timeout_handler(request, exc: StoreTimeoutError):
    return JSONResponse(status_code=504, content={"detail": exc.message})


@app.exception_handler(StoreError)
async def store_error_handler(request, exc: StoreError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.message})


@app.exception_handler(AppError)
async def app_error_handler(request, exc: AppError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.get("/health")
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT)
