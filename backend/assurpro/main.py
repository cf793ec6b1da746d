from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from .core.config import get_settings
from .core.logging import configure_logging
from .api.routes_auth import router as auth_router
from .api.routes_clients import router as clients_router
from .api.routes_contracts import router as contracts_router
from .api.routes_notifications import router as notifications_router
from .api.routes_reports import router as reports_router
from .api.routes_stats import router as stats_router
from .services.errors import DomainError
from .services.identity import IdentityError, IdentityErrorKind, IdentityProviderClient
from .services.profile_store import StoreError, StoreErrorKind, classify_db_error

configure_logging()
settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.identity = IdentityProviderClient(
        base_url=settings.SUPABASE_URL,
        service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
        anon_key=settings.SUPABASE_ANON_KEY,
        timeout=settings.IDENTITY_TIMEOUT_SECONDS,
    )
    try:
        yield
    finally:
        await app.state.identity.aclose()


app = FastAPI(title="OptimumAssurPro API", lifespan=lifespan)

# CORS:
# - In prod, FRONTEND_ORIGIN is required and we never fall back to "*".
# - In non-prod, wide-open CORS is only enabled if CORS_ALLOW_ALL_ORIGINS=True
#   or when no origin is configured at all.
if settings.ENV.lower() == "prod":
    if not settings.FRONTEND_ORIGIN:
        raise RuntimeError(
            "FRONTEND_ORIGIN must be set in production – refusing to start with wide-open CORS."
        )
    origins = [o.strip() for o in settings.FRONTEND_ORIGIN.split(",") if o.strip()]
elif settings.CORS_ALLOW_ALL_ORIGINS or not settings.FRONTEND_ORIGIN:
    origins = ["*"]
else:
    origins = [o.strip() for o in settings.FRONTEND_ORIGIN.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    body = {"detail": exc.detail}
    if exc.code:
        body["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(IdentityError)
async def identity_error_handler(request: Request, exc: IdentityError):
    if exc.kind is IdentityErrorKind.UNAVAILABLE:
        return JSONResponse(
            status_code=503,
            content={"detail": "Service d'authentification indisponible"},
        )
    logger.error(
        "Unhandled identity provider error: %s", exc.message,
        extra={"step": request.url.path, "error_kind": exc.kind.value},
    )
    return JSONResponse(status_code=502, content={"detail": "Erreur du fournisseur d'identité"})


def _store_error_response(request: Request, err: StoreError) -> JSONResponse:
    if err.kind is StoreErrorKind.DUPLICATE_KEY:
        return JSONResponse(status_code=400, content={"detail": "Cette valeur existe déjà"})
    logger.error(
        "Database error: %s", err.message,
        extra={"step": request.url.path, "error_kind": err.kind.value},
    )
    return JSONResponse(status_code=500, content={"detail": "Erreur interne du serveur"})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return _store_error_response(request, exc)


@app.exception_handler(DBAPIError)
async def db_error_handler(request: Request, exc: DBAPIError):
    return _store_error_response(request, classify_db_error(exc))


@app.get(f"{settings.API_PREFIX}/health")
def health():
    return {"status": "OK", "message": "OptimumAssurPro API is running"}


app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(clients_router, prefix=settings.API_PREFIX)
app.include_router(contracts_router, prefix=settings.API_PREFIX)
app.include_router(notifications_router, prefix=settings.API_PREFIX)
app.include_router(stats_router, prefix=settings.API_PREFIX)
app.include_router(reports_router, prefix=settings.API_PREFIX)
