from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from safetriage.agents.intake_machine import IntakeValidationError
from safetriage.api.triage import router as triage_router
from safetriage.config.database import Database
from safetriage.config.settings import settings
from safetriage.services.session_lifecycle import SessionLifecycleManager
from safetriage.services.session_store import StoreUnavailable, get_session_store
import asyncio
import logging

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
if settings.log_file:
    file_handler = logging.FileHandler(settings.log_file)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.getLogger().addHandler(file_handler)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting SafeTriage service...")
    logger.info(f"Environment: {settings.environment}")

    uses_mongo = settings.session_backend.lower() == "mongo"
    if uses_mongo:
        try:
            await Database.connect_db()
            logger.info("MongoDB connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    sweep_task = None
    if settings.session_sweep_interval_seconds > 0:
        lifecycle = SessionLifecycleManager(get_session_store())
        sweep_task = asyncio.create_task(
            lifecycle.run_periodic(settings.session_sweep_interval_seconds)
        )

    yield

    # Shutdown
    logger.info("Shutting down SafeTriage service...")
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    if uses_mongo:
        await Database.close_db()
        logger.info("MongoDB connection closed")


# Initialize FastAPI app
app = FastAPI(
    title="SafeTriage",
    description="Deterministic symptom triage, prescription safety screening and lab report extraction.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(IntakeValidationError)
async def intake_validation_handler(request: Request, exc: IntakeValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"Session store unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Session store unavailable. Please retry shortly."},
    )


# Register routers
app.include_router(triage_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        store_ok = await get_session_store().ping()
        store_status = "connected" if store_ok else "unreachable"
    except StoreUnavailable as e:
        logger.error(f"Session store health check failed: {e}")
        store_status = f"error: {str(e)}"

    return {
        "status": "ok",
        "service": settings.service_name,
        "version": "1.0.0",
        "dependencies": {
            "session_store": f"{settings.session_backend}: {store_status}",
            "github_models": (
                "configured" if settings.github_token else "not configured"
            ),
            "llm_augmentation": (
                "enabled" if settings.llm_augmentation_enabled else "disabled"
            ),
        },
    }


@app.get("/")
async def root():
    return {
        "message": "SafeTriage Service",
        "description": "Deterministic triage and medication safety screening",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "safetriage.main:app",
        host="0.0.0.0",
        port=settings.safetriage_port,
        reload=settings.environment == "development",
    )
