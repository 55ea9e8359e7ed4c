import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from authgate.config import settings
from authgate.core import errors
from authgate.core.middleware import SecurityHeadersMiddleware, SessionTimeoutMiddleware
from authgate.core.rate_limit import limiter
from authgate.modules.auth import routes as auth_routes
from authgate.modules.sessions import routes as sessions_routes
from authgate.modules.users import routes as users_routes
from authgate.modules.roles import routes as roles_routes
from authgate.modules.site_settings import routes as site_settings_routes
from authgate.modules.dashboard import routes as dashboard_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, errors.rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    message = "Internal server error" if settings.is_production else str(exc)
    return errors.error_response(errors.SERVER_ERROR, message, status_code=500)


app.add_middleware(SessionTimeoutMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Email links and the browser session bridge use fixed paths
app.include_router(auth_routes.confirm_router)

# Include module routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(sessions_routes.router, prefix="/api/v1")
app.include_router(users_routes.router, prefix="/api/v1")
app.include_router(roles_routes.router, prefix="/api/v1")
app.include_router(site_settings_routes.router, prefix="/api/v1")
app.include_router(dashboard_routes.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup (%s)", settings.environment)
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("SUPABASE_URL / SUPABASE_KEY are not set; Supabase calls will fail")
    if not settings.supabase_service_role_key:
        logger.warning("SUPABASE_SERVICE_ROLE_KEY is not set; admin user management falls back to the anon key")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "Welcome to authgate", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: reports whether Supabase is configured."""
    configured = bool(settings.supabase_url and settings.supabase_key)
    return {"status": "ready" if configured else "not_configured"}
