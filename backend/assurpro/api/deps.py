import logging

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.db import get_db
from ..services.accounts import AuthContext
from ..services.identity import IdentityError, IdentityErrorKind, IdentityProviderClient
from ..services.profile_store import ProfileStore
from ..services.reconciliation import ProfileReconciler, RetryPolicy

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def get_identity_client(request: Request) -> IdentityProviderClient:
    """The client is owned by the application lifespan (see main.py)."""
    client = getattr(request.app.state, "identity", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Identity provider not configured")
    return client


def get_profile_store(db: Session = Depends(get_db)) -> ProfileStore:
    return ProfileStore(db)


def get_reconciler(store: ProfileStore = Depends(get_profile_store)) -> ProfileReconciler:
    settings = get_settings()
    policy = RetryPolicy(
        attempts=settings.PROFILE_PROVISION_ATTEMPTS,
        backoff_seconds=settings.PROFILE_PROVISION_BACKOFF_SECONDS,
    )
    return ProfileReconciler(store, policy)


async def get_current_entreprise(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    identity: IdentityProviderClient = Depends(get_identity_client),
    reconciler: ProfileReconciler = Depends(get_reconciler),
) -> AuthContext:
    """
    Authenticate the bearer token against the identity provider and attach
    the caller's company profile.

    Profile provisioning problems never reject the request; see
    services/reconciliation.py.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Token d'authentification manquant")

    try:
        user = await identity.get_user(credentials.credentials)
    except IdentityError as exc:
        if exc.kind is IdentityErrorKind.UNAVAILABLE:
            raise HTTPException(status_code=503, detail="Service d'authentification indisponible")
        raise HTTPException(status_code=401, detail="Token invalide ou expiré")

    if not user.email_verified:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Veuillez vérifier votre adresse email avant d'accéder à cette ressource.",
                "code": "EMAIL_NOT_CONFIRMED",
            },
        )

    result = await reconciler.reconcile(user)
    if result.degraded:
        logger.warning(
            "Serving request with placeholder profile",
            extra={"user_id": user.id, "step": "authenticate"},
        )

    return AuthContext(
        user=user,
        entreprise=result.profile,
        email_verified=result.email_verified,
    )
