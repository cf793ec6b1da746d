# backend/assurpro/schemas/auth.py
from datetime import datetime
import re
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_PASSWORD_LEN = 8
MAX_NAME_LEN = 255
MAX_PHONE_LEN = 20


def check_email(v: str) -> str:
    v = (v or "").strip()
    if not EMAIL_RE.match(v):
        raise ValueError("Veuillez entrer une adresse email valide")
    return v


def check_password_strength(v: str) -> str:
    if not v or len(v) < MIN_PASSWORD_LEN:
        raise ValueError(
            f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LEN} caractères"
        )
    if not re.search(r"[A-Z]", v):
        raise ValueError("Le mot de passe doit contenir au moins une majuscule")
    if not re.search(r"[a-z]", v):
        raise ValueError("Le mot de passe doit contenir au moins une minuscule")
    if not re.search(r"[0-9]", v):
        raise ValueError("Le mot de passe doit contenir au moins un chiffre")
    return v


def _blank_to_none(v):
    if isinstance(v, str):
        return v.strip() or None
    return v


class EntrepriseProfile(BaseModel):
    """
    Company profile as seen by request handlers.

    ``persisted`` is False for the placeholder synthesised when the profile
    row could not be written yet.
    """
    id: UUID
    nom: str
    email: str
    telephone: str | None = None
    adresse: str | None = None
    email_verified: bool = False
    created_at: datetime | None = None
    persisted: bool = False

    model_config = ConfigDict(from_attributes=True)


class EntrepriseSummary(BaseModel):
    id: UUID
    nom: str
    email: str
    email_verified: bool


class RegisterRequest(BaseModel):
    nom: str
    email: str
    password: str
    telephone: str | None = None
    adresse: str | None = None

    @field_validator("telephone", "adresse", mode="before")
    @classmethod
    def _optional_blank(cls, v):
        return _blank_to_none(v)

    @field_validator("nom")
    @classmethod
    def validate_nom(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nom, email et mot de passe sont requis")
        if len(v) > MAX_NAME_LEN:
            raise ValueError(f"nom must be at most {MAX_NAME_LEN} characters")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return check_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("telephone")
    @classmethod
    def validate_telephone(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_PHONE_LEN:
            raise ValueError(f"telephone must be at most {MAX_PHONE_LEN} characters")
        return v


class RegisterResponse(BaseModel):
    message: str
    email_sent: bool
    user_id: UUID
    entreprise: EntrepriseSummary
    email_verified: bool
    profile_persisted: bool


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def _required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Email et mot de passe sont requis")
        return v

    @field_validator("email")
    @classmethod
    def _strip_email(cls, v: str) -> str:
        return v.strip()


class LoginResponse(BaseModel):
    message: str
    token: str
    refresh_token: str
    entreprise: EntrepriseSummary


class EmailRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Email requis")
        return v


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str

    @field_validator("token")
    @classmethod
    def _token_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Token et nouveau mot de passe sont requis")
        return v.strip()

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("current_password")
    @classmethod
    def _current_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Mot de passe actuel et nouveau mot de passe sont requis")
        return v

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)


class ProfileUpdate(BaseModel):
    nom: str
    email: str
    telephone: str | None = None
    adresse: str | None = None

    @field_validator("telephone", "adresse", mode="before")
    @classmethod
    def _optional_blank(cls, v):
        return _blank_to_none(v)

    @field_validator("nom")
    @classmethod
    def validate_nom(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nom et email sont requis")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return check_email(v)


class MessageOut(BaseModel):
    message: str
    email_sent: bool | None = None
