"""
FabricShoot API - Fabric Photos to Fashion Content
FastAPI Backend Entry Point
"""

import io
import logging
import mimetypes
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from fabricshoot import __version__
from fabricshoot.api import generate, multi_fabric, reels
from fabricshoot.core.config import settings
from fabricshoot.core.database import SessionLocal, init_db
from fabricshoot.services.storage import StorageService
from fabricshoot.workers.base import PipelineError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("fabricshoot")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting {settings.APP_NAME}...")
    init_db()
    logger.info("Database tables ready")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Fabric photos to model/mannequin images, bilingual captions and reel audio",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


# Include routers
app.include_router(generate.router, prefix="/api/v1", tags=["Content Generation"])
app.include_router(multi_fabric.router, prefix="/api/v1", tags=["Multi-Fabric"])
app.include_router(reels.router, prefix="/api/v1", tags=["Reels"])


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for monitoring."""
    status = {
        "status": "healthy",
        "version": __version__,
        "environment": {
            "storage": "gcs" if settings.USE_GCS else ("local" if settings.USE_LOCAL_STORAGE else "s3"),
            "database": "sqlite" if settings.DATABASE_URL.startswith("sqlite") else "postgresql",
        },
        "services": {},
    }

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        status["services"]["database"] = "ok"
    except Exception as e:
        status["services"]["database"] = f"error: {e}"
        status["status"] = "degraded"
    finally:
        db.close()

    try:
        available = await StorageService().check()
        status["services"]["storage"] = "ok" if available else "missing bucket"
        if not available:
            status["status"] = "degraded"
    except Exception as e:
        status["services"]["storage"] = f"error: {e}"
        status["status"] = "degraded"

    for name, key in (("gemini", settings.GEMINI_API_KEY), ("groq", settings.GROQ_API_KEY),
                      ("elevenlabs", settings.ELEVENLABS_API_KEY)):
        status["services"][name] = "configured" if key else "missing key"

    return status


@app.get("/files/{bucket}/{file_path:path}", tags=["Files"])
async def serve_file(bucket: str, file_path: str):
    """
    Serve stored files (images, audio) from storage.
    This proxies files from GCS/S3/local storage to the frontend.
    """
    try:
        file_bytes = await StorageService().get_file(bucket, file_path)
    except Exception as e:
        logger.warning(f"[Files] {bucket}/{file_path} not found: {e}")
        raise HTTPException(status_code=404, detail="File not found")

    content_type = mimetypes.guess_type(file_path)[0] or "application/octet-stream"
    return StreamingResponse(
        io.BytesIO(file_bytes),
        media_type=content_type,
        headers={"Cache-Control": "public, max-age=3600"},
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"{settings.APP_NAME} - fabric photos to fashion content",
        "docs": "/docs",
        "health": "/health",
    }
