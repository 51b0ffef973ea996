import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from clinica.config.settings import Settings, settings as default_settings
from clinica.database.supabase_client import BackendClient, Tables, create_backend, create_service_backend
from clinica.modules.audit.service import AuditLogger
from clinica.modules.catalog.service import ClinicTypeStore, MedicalAssistantStore, ProviderStore
from clinica.modules.shifts.service import ShiftStore
from clinica.modules.audit import routes as audit_routes
from clinica.modules.auth import routes as auth_routes
from clinica.modules.catalog import routes as catalog_routes
from clinica.modules.data_transfer import routes as data_transfer_routes
from clinica.modules.shifts import routes as shifts_routes
from clinica.modules.user_settings import routes as user_settings_routes
from clinica.modules.users import routes as users_routes

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[BackendClient] = None,
    service_backend: Optional[BackendClient] = None,
) -> FastAPI:
    """
    Build the API. The public-key backend validates tokens and signs users in;
    the service-role backend serves data, with authorization enforced by the
    route dependencies.
    """
    settings = settings or default_settings
    backend = backend or create_backend(settings)
    service_backend = service_backend or create_service_backend(settings)

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        redirect_slashes=False,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    audit = AuditLogger(service_backend)
    app.state.settings = settings
    app.state.backend = backend
    app.state.service_backend = service_backend
    app.state.audit = audit
    app.state.stores = {
        Tables.PROVIDERS: ProviderStore(service_backend, audit),
        Tables.CLINIC_TYPES: ClinicTypeStore(service_backend, audit),
        Tables.MEDICAL_ASSISTANTS: MedicalAssistantStore(service_backend, audit),
        Tables.SHIFTS: ShiftStore(service_backend, audit),
    }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        if settings.is_production:
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include module routes
    app.include_router(auth_routes.router, prefix="/api/v1")
    app.include_router(users_routes.router, prefix="/api/v1")
    app.include_router(catalog_routes.providers_router, prefix="/api/v1")
    app.include_router(catalog_routes.clinic_types_router, prefix="/api/v1")
    app.include_router(catalog_routes.medical_assistants_router, prefix="/api/v1")
    app.include_router(shifts_routes.router, prefix="/api/v1")
    app.include_router(audit_routes.router, prefix="/api/v1")
    app.include_router(user_settings_routes.router, prefix="/api/v1")
    app.include_router(data_transfer_routes.router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}

    @app.get("/health")
    @limiter.exempt
    async def health():
        return {"status": "healthy", "supabase": backend.check_status()["is_configured"]}

    @app.get("/ready")
    @limiter.exempt
    async def ready():
        """Readiness check: backend configured and the schema reachable."""
        result = service_backend.test_connection()
        if not result["success"]:
            logger.warning(f"Readiness check failed: {result['error']}")
            return JSONResponse(status_code=503, content={"status": "not ready", "error": result["error"]})
        return {"status": "ready"}

    logger.info(f"Application created (environment={settings.environment})")
    return app


configure_logging(default_settings)
app = create_app()
