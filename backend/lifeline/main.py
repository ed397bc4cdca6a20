from contextlib import asynccontextmanager
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from lifeline.config import get_settings
from lifeline.database import build_engine, build_session_factory, create_all
from lifeline.exceptions import CryptoError, LifelineError, NotFoundError, StateConflictError, ValidationError
from lifeline.logging_config import configure_logging
from lifeline.routers import contacts, emergency, facilities, panic, profile, realtime
from lifeline.services.container import build_container
from lifeline.services.event_publisher import WebSocketHub

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: logging, tables, then the service graph
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    engine = build_engine(settings.database_url)
    await create_all(engine)
    app.state.services = build_container(settings, build_session_factory(engine), WebSocketHub())
    logger.info("lifeline_started", panic_resolution_policy=settings.panic_resolution_policy)
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="Lifeline Emergency Access",
    description="Emergency QR access to medical profiles, panic alerts and contact notification",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Medical data must never sit in a browser or proxy cache."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0"
        response.headers["Expires"] = "0"
        response.headers["Pragma"] = "no-cache"
        return response


app.add_middleware(NoCacheMiddleware)


_STATUS_BY_ERROR = {
    NotFoundError: 404,
    ValidationError: 400,
    StateConflictError: 409,
}


@app.exception_handler(LifelineError)
async def lifeline_error_handler(request: Request, exc: LifelineError):
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return JSONResponse(status_code=status_code, content={"detail": exc.message})

    if isinstance(exc, CryptoError):
        # Never echo crypto internals to the client
        logger.error("crypto_failure", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=500, content={"detail": "Unable to read protected data"})

    logger.error("unhandled_lifeline_error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


app.include_router(emergency.router, prefix="/api/emergency", tags=["Emergency"])
app.include_router(profile.router, prefix="/api/profile", tags=["Profile"])
app.include_router(panic.router, prefix="/api/panic", tags=["Panic"])
app.include_router(facilities.router, prefix="/api/facilities", tags=["Facilities"])
app.include_router(contacts.router, prefix="/api/contacts", tags=["Contacts"])
app.include_router(realtime.router, tags=["Realtime"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "lifeline"}
