import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from api.routes import call_route
from config.basic_config import settings
from config.db_config import MongoDBClient, create_indexes
from config.models.call_record_model import MongoCallRecordStore
from config.models.host_model import MongoHostDirectory
from config.models.system_config_model import MongoPricingConfigSource
from config.models.transaction_model import MongoTransactionLog
from config.models.wallet_model import MongoWalletStore
from core.utils.exceptions import (
    CallNotActiveError,
    CustomValidationError,
    call_not_active_handler,
    custom_validation_error_handler,
    validation_exception_handler,
)
from core.utils.logging_config import setup_logging, get_logger
from services.call_manager import CallManager
from services.call_registry import CallRegistry

# Setup logging with file and console output
setup_logging(
    log_level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    log_to_file=settings.LOG_TO_FILE,
    log_to_console=True,
    log_dir=settings.LOG_DIR,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("[STARTUP] Starting application initialization...")

    mongodb_client = MongoDBClient(settings)
    mongodb_client.connect()
    if await mongodb_client.ping():
        await create_indexes(mongodb_client.database)
        logger.info("[SUCCESS] Database initialized successfully")
    else:
        logger.error("[ERROR] Database initialization failed - application may not function properly")

    db = mongodb_client.database
    wallet_store = MongoWalletStore(db)
    call_record_store = MongoCallRecordStore(db)
    host_directory = MongoHostDirectory(db)
    transaction_log = MongoTransactionLog(db)
    pricing_source = MongoPricingConfigSource(db)

    def manager_factory() -> CallManager:
        return CallManager(
            wallet_store=wallet_store,
            call_record_store=call_record_store,
            host_directory=host_directory,
            transaction_log=transaction_log,
            pricing_source=pricing_source,
        )

    scheduler = AsyncIOScheduler()
    scheduler.start()

    app.state.mongodb_client = mongodb_client
    app.state.call_record_store = call_record_store
    app.state.transaction_log = transaction_log
    app.state.call_registry = CallRegistry(
        manager_factory,
        scheduler=scheduler,
        tick_interval_seconds=settings.BILLING_TICK_INTERVAL_SECONDS,
    )
    logger.info("Application startup completed successfully!")

    yield

    logger.info("Starting application shutdown...")
    await app.state.call_registry.shutdown()
    try:
        scheduler.shutdown(wait=False)
    except Exception as e:
        logger.error("Error shutting down scheduler: %s", e)
    await mongodb_client.disconnect()


app = FastAPI(lifespan=lifespan)

app.add_exception_handler(CustomValidationError, custom_validation_error_handler)
app.add_exception_handler(CallNotActiveError, call_not_active_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)


# Add request monitoring middleware
@app.middleware("http")
async def monitor_requests(request: Request, call_next):
    start_time = time.time()
    logger.info(f"[START] {request.method} {request.url.path}")

    try:
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info(f"[COMPLETE] {request.method} {request.url.path} - {response.status_code} in {duration:.3f}s")

        # Monitor slow requests
        if duration > 5.0:
            logger.warning(f"[SLOW] {request.method} {request.url.path} took {duration:.3f}s")
        return response

    except Exception as e:
        duration = time.time() - start_time
        logger.error(f"[ERROR] {request.method} {request.url.path} after {duration:.3f}s - {str(e)}")
        raise


app.include_router(call_route.router)


# Health check endpoints
@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "ConnectCall Billing Backend",
    }


@app.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check for container orchestration"""
    mongodb_client = getattr(request.app.state, "mongodb_client", None)
    if mongodb_client is None:
        return {"status": "not_ready", "reason": "database_not_configured"}
    if await mongodb_client.ping():
        return {"status": "ready"}
    return {"status": "not_ready", "reason": "database_not_connected"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
    )
