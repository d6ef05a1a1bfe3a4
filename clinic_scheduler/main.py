import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment variables as early as possible
load_dotenv()

from .application.ports.audit_logger import AuditLogger
from .application.ports.store import Store, StorageUnavailable, TransientStorageError
from .application.services.access_policy import AccessPolicy
from .application.services.appointment_state_machine import AppointmentStateMachine
from .application.services.atomic import AtomicRunner
from .application.services.audit_log import AuditLog
from .application.services.diagnosis_ledger import DiagnosisSuggestionLedger
from .application.services.scheduling_service import SchedulingService
from .application.services.shift_service import ShiftService
from .application.services.slot_allocator import SlotAllocator
from .config import Settings, get_settings
from .database import build_engine, create_db_and_tables
from .exceptions import SchedulingError, create_error_response, scheduling_exception_handler
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.persistence.sqlalchemy.store_sql import SqlStore
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, SecurityMiddleware
from .routers import appointments_router, scheduling_router
from .schemas import HealthResponse

logger = logging.getLogger(__name__)


def build_services(store: Store, settings: Settings, audit_logger: Optional[AuditLogger] = None):
    """Wire the scheduling core. Returns (SchedulingService, ShiftService)."""
    policy = AccessPolicy()
    allocator = SlotAllocator()
    audit_log = AuditLog()
    state_machine = AppointmentStateMachine(policy=policy, audit_log=audit_log, allocator=allocator)
    runner = AtomicRunner(
        store=store,
        max_attempts=settings.ATOMIC_RETRY_ATTEMPTS,
        backoff_seconds=settings.ATOMIC_RETRY_BACKOFF_SEC,
    )
    scheduling = SchedulingService(
        store=store,
        policy=policy,
        allocator=allocator,
        state_machine=state_machine,
        audit_log=audit_log,
        ledger=DiagnosisSuggestionLedger(),
        audit_logger=audit_logger or StdAuditLogger(),
        runner=runner,
        allow_past_slots=settings.SLOT_ALLOW_PAST,
    )
    shifts = ShiftService(runner=runner, policy=policy, allow_past=settings.SHIFT_ALLOW_PAST)
    return scheduling, shifts


async def storage_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=create_error_response("internal_error", "Internal server error"),
    )


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )

    engine = None
    if store is None:
        engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
        store = SqlStore(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME}...")
        app.state.db_init_ok = True
        app.state.db_init_error = None
        if engine is not None:
            try:
                create_db_and_tables(engine)
                logger.info("Database initialized successfully")
            except Exception as e:
                # Do not crash the app; report via health endpoint
                app.state.db_init_ok = False
                app.state.db_init_error = str(e)
                logger.exception("Database initialization failed")
        yield
        logger.info(f"Shutting down {settings.APP_NAME}...")
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None),
    )

    app.state.settings = settings
    app.state.store = store
    app.state.scheduling_service, app.state.shift_service = build_services(store, settings)

    app.add_exception_handler(SchedulingError, scheduling_exception_handler)
    app.add_exception_handler(StorageUnavailable, storage_exception_handler)
    app.add_exception_handler(TransientStorageError, storage_exception_handler)

    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(appointments_router.router)
    app.include_router(scheduling_router.router)

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        ok = getattr(app.state, "db_init_ok", True)
        return HealthResponse(
            status="healthy" if ok else "degraded",
            service=settings.APP_NAME,
            version=settings.APP_VERSION,
            timestamp=datetime.utcnow().isoformat(),
            database_error=getattr(app.state, "db_init_error", None),
        )

    return app
