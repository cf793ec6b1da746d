from fastapi import APIRouter, Depends

from ..schemas.auth import (
    ChangePasswordRequest,
    EmailRequest,
    EntrepriseProfile,
    LoginRequest,
    LoginResponse,
    MessageOut,
    ProfileUpdate,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
)
from ..services import accounts
from ..services.accounts import AuthContext
from ..services.identity import IdentityProviderClient
from ..services.profile_store import ProfileStore
from ..services.reconciliation import ProfileReconciler
from .deps import get_current_entreprise, get_identity_client, get_profile_store, get_reconciler

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    identity: IdentityProviderClient = Depends(get_identity_client),
    reconciler: ProfileReconciler = Depends(get_reconciler),
):
    return await accounts.register(payload, identity, reconciler)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    identity: IdentityProviderClient = Depends(get_identity_client),
    reconciler: ProfileReconciler = Depends(get_reconciler),
):
    return await accounts.login(payload, identity, reconciler)


@router.post("/resend-verification", response_model=MessageOut)
async def resend_verification(
    payload: EmailRequest,
    identity: IdentityProviderClient = Depends(get_identity_client),
):
    if await accounts.resend_verification(payload.email, identity):
        return MessageOut(message="Email de vérification envoyé avec succès", email_sent=True)
    return MessageOut(
        message="Si cet email existe et n'est pas encore vérifié, un email de vérification vous sera envoyé."
    )


@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(
    payload: EmailRequest,
    identity: IdentityProviderClient = Depends(get_identity_client),
):
    await accounts.forgot_password(payload.email, identity)
    return MessageOut(
        message="Si cet email existe dans notre système, un lien de réinitialisation vous a été envoyé."
    )


@router.post("/reset-password", response_model=MessageOut)
async def reset_password(
    payload: ResetPasswordRequest,
    identity: IdentityProviderClient = Depends(get_identity_client),
):
    await accounts.reset_password(payload.token, payload.new_password, identity)
    return MessageOut(
        message="Mot de passe réinitialisé avec succès. Vous pouvez maintenant vous connecter."
    )


@router.get("/me")
async def get_me(
    ctx: AuthContext = Depends(get_current_entreprise),
    store: ProfileStore = Depends(get_profile_store),
):
    profile = await accounts.get_me(ctx, store)
    return {"entreprise": profile.model_dump(exclude={"persisted", "email_verified"})}


@router.put("/profile")
async def update_profile(
    payload: ProfileUpdate,
    ctx: AuthContext = Depends(get_current_entreprise),
    store: ProfileStore = Depends(get_profile_store),
):
    updated: EntrepriseProfile = await accounts.update_profile(ctx, payload, store)
    return {
        "message": "Profil mis à jour avec succès",
        "entreprise": updated.model_dump(exclude={"persisted"}),
    }


@router.post("/change-password", response_model=MessageOut)
async def change_password(
    payload: ChangePasswordRequest,
    ctx: AuthContext = Depends(get_current_entreprise),
    identity: IdentityProviderClient = Depends(get_identity_client),
):
    await accounts.change_password(ctx, payload, identity)
    return MessageOut(message="Mot de passe changé avec succès")
