# backend/assurpro/services/accounts.py
"""
Account flows backed by the identity provider: registration, login,
password management and profile edits.
"""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID
import logging

from ..core.config import get_settings
from ..schemas.auth import (
    ChangePasswordRequest,
    EntrepriseProfile,
    EntrepriseSummary,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    RegisterResponse,
)
from .errors import AuthError, ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from .identity import IdentityError, IdentityErrorKind, IdentityProviderClient, IdentityUser
from .profile_store import ProfileStore
from .reconciliation import ProfileReconciler, RetryPolicy

logger = logging.getLogger(__name__)

EMAIL_NOT_CONFIRMED_MSG = (
    "Veuillez vérifier votre adresse email avant de vous connecter. "
    "Un email de vérification vous a été envoyé lors de l'inscription."
)


@dataclass
class AuthContext:
    """What an authenticated request knows about its caller."""
    user: IdentityUser
    entreprise: EntrepriseProfile
    email_verified: bool

    @property
    def entreprise_id(self) -> UUID:
        return self.entreprise.id


def _summary(profile: EntrepriseProfile, user: IdentityUser) -> EntrepriseSummary:
    return EntrepriseSummary(
        id=profile.id,
        nom=profile.nom,
        email=user.email or profile.email,
        email_verified=user.email_verified,
    )


def _redirect(page: str) -> str:
    return f"{get_settings().APP_URL.rstrip('/')}/{page}"


def registration_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        attempts=settings.PROFILE_PROVISION_ATTEMPTS,
        backoff_seconds=settings.REGISTRATION_BACKOFF_SECONDS,
    )


async def register(
    payload: RegisterRequest,
    identity: IdentityProviderClient,
    reconciler: ProfileReconciler,
) -> RegisterResponse:
    """
    Create the provider user, then its company profile.

    Once the provider has accepted the sign-up the request succeeds even if
    the profile row could not be written; it is then created on first login.
    """
    try:
        signup = await identity.sign_up(
            payload.email,
            payload.password,
            metadata={
                "nom": payload.nom,
                "telephone": payload.telephone,
                "adresse": payload.adresse,
            },
            redirect_to=_redirect("verify-email.html"),
        )
    except IdentityError as exc:
        logger.warning(
            "Sign-up rejected by identity provider (%s)", exc.kind.value,
            extra={"step": "register", "error_kind": exc.kind.value},
        )
        if exc.kind is IdentityErrorKind.ALREADY_REGISTERED:
            raise ConflictError("Cet email est déjà utilisé") from exc
        if exc.kind is IdentityErrorKind.UNAVAILABLE:
            raise
        raise InvalidInputError(exc.message) from exc

    user = signup.user
    policy = registration_policy()
    log_extra = {"user_id": user.id, "step": "register"}
    logger.info("Identity user created", extra=log_extra)

    if not await reconciler.wait_until_visible(identity, user.id, policy=policy):
        logger.warning("User not visible yet; profile insert may be deferred", extra=log_extra)

    result = await reconciler.provision(
        user,
        {
            "nom": payload.nom,
            "email": payload.email,
            "telephone": payload.telephone,
            "adresse": payload.adresse,
        },
        policy=policy,
        overwrite_existing=True,
    )

    # The provider mails the confirmation link when it neither confirmed the
    # address nor opened a session.
    email_sent = not user.email_verified and not signup.has_session
    if not email_sent and not user.email_verified:
        logger.warning(
            "Confirmation e-mail may not have been sent; check provider e-mail settings",
            extra=log_extra,
        )

    return RegisterResponse(
        message=(
            "Compte créé avec succès. Veuillez vérifier votre email pour activer votre compte."
            if email_sent
            else "Compte créé avec succès. Un email de confirmation vous a été envoyé."
        ),
        email_sent=email_sent,
        user_id=UUID(user.id),
        entreprise=_summary(result.profile, user),
        email_verified=user.email_verified,
        profile_persisted=result.profile.persisted,
    )


async def login(
    payload: LoginRequest,
    identity: IdentityProviderClient,
    reconciler: ProfileReconciler,
) -> LoginResponse:
    try:
        session = await identity.sign_in_with_password(payload.email, payload.password)
    except IdentityError as exc:
        logger.info(
            "Login rejected (%s)", exc.kind.value,
            extra={"step": "login", "error_kind": exc.kind.value},
        )
        if exc.kind is IdentityErrorKind.EMAIL_NOT_CONFIRMED:
            raise ForbiddenError(EMAIL_NOT_CONFIRMED_MSG, code="EMAIL_NOT_CONFIRMED") from exc
        if exc.kind is IdentityErrorKind.INVALID_CREDENTIALS:
            raise AuthError("Email ou mot de passe incorrect", code="INVALID_CREDENTIALS") from exc
        if exc.kind is IdentityErrorKind.UNAVAILABLE:
            raise
        raise AuthError(exc.message, code="AUTH_ERROR") from exc

    user = session.user
    if not user.email_verified:
        raise ForbiddenError(EMAIL_NOT_CONFIRMED_MSG, code="EMAIL_NOT_CONFIRMED")

    result = await reconciler.reconcile(user)
    return LoginResponse(
        message="Connexion réussie",
        token=session.access_token,
        refresh_token=session.refresh_token,
        entreprise=_summary(result.profile, user),
    )


async def resend_verification(email: str, identity: IdentityProviderClient) -> bool:
    """Returns whether the provider accepted the request; callers stay neutral."""
    try:
        await identity.resend_signup(email, redirect_to=_redirect("verify-email.html"))
    except IdentityError as exc:
        logger.info(
            "Verification resend not accepted (%s)", exc.kind.value,
            extra={"step": "resend_verification", "error_kind": exc.kind.value},
        )
        return False
    return True


async def forgot_password(email: str, identity: IdentityProviderClient) -> None:
    try:
        await identity.send_password_recovery(email, redirect_to=_redirect("reset-password.html"))
    except IdentityError as exc:
        # Never reveal whether the address exists
        logger.info(
            "Password recovery not accepted (%s)", exc.kind.value,
            extra={"step": "forgot_password", "error_kind": exc.kind.value},
        )


async def reset_password(token: str, new_password: str, identity: IdentityProviderClient) -> None:
    try:
        await identity.update_password(token, new_password)
    except IdentityError as exc:
        if exc.kind is IdentityErrorKind.UNAVAILABLE:
            raise
        raise InvalidInputError("Token de réinitialisation invalide ou expiré") from exc


async def change_password(
    ctx: AuthContext,
    payload: ChangePasswordRequest,
    identity: IdentityProviderClient,
) -> None:
    try:
        user = await identity.get_user_by_id(ctx.user.id)
    except IdentityError as exc:
        if exc.kind is IdentityErrorKind.UNAVAILABLE:
            raise
        raise NotFoundError("Utilisateur non trouvé") from exc

    try:
        await identity.sign_in_with_password(user.email, payload.current_password)
    except IdentityError as exc:
        if exc.kind is IdentityErrorKind.UNAVAILABLE:
            raise
        raise AuthError("Mot de passe actuel incorrect") from exc

    await identity.admin_update_password(user.id, payload.new_password)
    logger.info("Password changed", extra={"user_id": user.id, "step": "change_password"})


async def get_me(ctx: AuthContext, store: ProfileStore) -> EntrepriseProfile:
    profile = await store.get(ctx.entreprise_id)
    if profile is None:
        raise NotFoundError("Entreprise non trouvée")
    return profile


async def update_profile(ctx: AuthContext, payload: ProfileUpdate, store: ProfileStore) -> EntrepriseProfile:
    if await store.email_taken_by_other(payload.email, ctx.entreprise_id):
        raise ConflictError("Cet email est déjà utilisé par une autre entreprise")

    updated = await store.update_fields(
        ctx.entreprise_id,
        {
            "nom": payload.nom,
            "email": payload.email,
            "telephone": payload.telephone,
            "adresse": payload.adresse,
        },
    )
    if updated is None:
        raise NotFoundError("Entreprise non trouvée")
    return updated
