# backend/assurpro/services/identity.py
"""
Client for the identity provider (Supabase Auth / GoTrue REST API).

The provider holds the canonical user record: credentials, confirmation
state and the metadata captured at sign-up. Local company profiles are keyed
by the provider's user id.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import enum
import logging

import httpx
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

logger = logging.getLogger(__name__)


class IdentityErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    ALREADY_REGISTERED = "already_registered"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    WEAK_PASSWORD = "weak_password"
    UNAVAILABLE = "unavailable"
    REJECTED = "rejected"


# Stable GoTrue ``error_code`` values mapped onto our kinds.
_ERROR_CODE_KINDS: Dict[str, IdentityErrorKind] = {
    "user_already_exists": IdentityErrorKind.ALREADY_REGISTERED,
    "email_exists": IdentityErrorKind.ALREADY_REGISTERED,
    "invalid_credentials": IdentityErrorKind.INVALID_CREDENTIALS,
    "email_not_confirmed": IdentityErrorKind.EMAIL_NOT_CONFIRMED,
    "weak_password": IdentityErrorKind.WEAK_PASSWORD,
    "user_not_found": IdentityErrorKind.NOT_FOUND,
    "bad_jwt": IdentityErrorKind.UNAUTHENTICATED,
    "no_authorization": IdentityErrorKind.UNAUTHENTICATED,
    "session_not_found": IdentityErrorKind.UNAUTHENTICATED,
}


class IdentityError(Exception):
    def __init__(self, kind: IdentityErrorKind, message: str = "", status_code: int | None = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value
        self.status_code = status_code


@dataclass
class IdentityUser:
    id: str
    email: str
    email_confirmed_at: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def email_verified(self) -> bool:
        return self.email_confirmed_at is not None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IdentityUser":
        return cls(
            id=str(payload["id"]),
            email=payload.get("email") or "",
            # Older GoTrue versions only expose ``confirmed_at``
            email_confirmed_at=payload.get("email_confirmed_at") or payload.get("confirmed_at"),
            user_metadata=dict(payload.get("user_metadata") or {}),
        )


@dataclass
class SignUpResult:
    user: IdentityUser
    has_session: bool


@dataclass
class Session:
    access_token: str
    refresh_token: str
    user: IdentityUser


def _error_from_response(response: httpx.Response, default: IdentityErrorKind) -> IdentityError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = (
        body.get("msg")
        or body.get("error_description")
        or body.get("message")
        or response.text
        or ""
    )

    kind = _ERROR_CODE_KINDS.get(str(body.get("error_code") or body.get("code") or ""))
    if kind is None:
        if response.status_code == 401:
            kind = IdentityErrorKind.UNAUTHENTICATED
        elif response.status_code == 404:
            kind = IdentityErrorKind.NOT_FOUND
        elif response.status_code >= 500:
            kind = IdentityErrorKind.UNAVAILABLE
        else:
            kind = default

    return IdentityError(kind, message, status_code=response.status_code)


class IdentityProviderClient:
    """
    Thin async wrapper around the GoTrue endpoints this backend needs.

    One instance is created by the application lifespan and shared through a
    FastAPI dependency; call :meth:`aclose` on shutdown.
    """

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        anon_key: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.service_role_key = service_role_key
        self.anon_key = anon_key or service_role_key
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- headers ---------------------------------------------------------

    def _public_headers(self, token: str | None = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }

    def _admin_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
        }

    # -- transport -------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: Dict[str, str],
        json: Dict[str, Any] | None = None,
        params: Dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self._http.request(
            method,
            f"{self.auth_url}{path}",
            headers=headers,
            json=json,
            params=params,
        )

    @retry(
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send_read(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._send(method, path, **kwargs)

    # Writes are only retried when the request never reached the provider;
    # a lost reply may belong to a sign-up or an e-mail that already happened.
    @retry(
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True,
    )
    async def _send_write(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._send(method, path, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Dict[str, str],
        default_error: IdentityErrorKind,
        json: Dict[str, Any] | None = None,
        params: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        try:
            send = self._send_read if method == "GET" else self._send_write
            response = await send(method, path, headers=headers, json=json, params=params)
        except httpx.TransportError as exc:
            logger.warning(
                "Identity provider unreachable: %s", exc,
                extra={"step": f"identity{path}"},
            )
            raise IdentityError(IdentityErrorKind.UNAVAILABLE, str(exc)) from exc

        if response.status_code >= 400:
            raise _error_from_response(response, default_error)

        if not response.content:
            return {}
        body = response.json()
        return body if isinstance(body, dict) else {}

    # -- user lookups ----------------------------------------------------

    async def get_user(self, access_token: str) -> IdentityUser:
        """Resolve the user behind an access token."""
        body = await self._request(
            "GET",
            "/user",
            headers=self._public_headers(access_token),
            default_error=IdentityErrorKind.UNAUTHENTICATED,
        )
        if not body.get("id"):
            raise IdentityError(IdentityErrorKind.UNAUTHENTICATED, "no user for token")
        return IdentityUser.from_payload(body)

    async def get_user_by_id(self, user_id: str) -> IdentityUser:
        """Admin lookup; raises NOT_FOUND until the user is visible."""
        body = await self._request(
            "GET",
            f"/admin/users/{user_id}",
            headers=self._admin_headers(),
            default_error=IdentityErrorKind.NOT_FOUND,
        )
        # Some versions wrap the record as {"user": {...}}
        payload = body.get("user") if isinstance(body.get("user"), dict) else body
        if not payload.get("id"):
            raise IdentityError(IdentityErrorKind.NOT_FOUND, f"user {user_id} not found")
        return IdentityUser.from_payload(payload)

    # -- sign-up / sign-in -----------------------------------------------

    async def sign_up(
        self,
        email: str,
        password: str,
        *,
        metadata: Dict[str, Any] | None = None,
        redirect_to: str | None = None,
    ) -> SignUpResult:
        body = await self._request(
            "POST",
            "/signup",
            headers=self._public_headers(),
            default_error=IdentityErrorKind.REJECTED,
            json={"email": email, "password": password, "data": metadata or {}},
            params={"redirect_to": redirect_to} if redirect_to else None,
        )
        # With e-mail confirmation enabled the user record is returned bare;
        # with auto-confirm a session envelope is returned instead.
        if isinstance(body.get("user"), dict):
            return SignUpResult(
                user=IdentityUser.from_payload(body["user"]),
                has_session=bool(body.get("access_token")),
            )
        if body.get("id"):
            return SignUpResult(user=IdentityUser.from_payload(body), has_session=False)
        raise IdentityError(IdentityErrorKind.REJECTED, "sign-up returned no user")

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        body = await self._request(
            "POST",
            "/token",
            headers=self._public_headers(),
            default_error=IdentityErrorKind.INVALID_CREDENTIALS,
            json={"email": email, "password": password},
            params={"grant_type": "password"},
        )
        if not body.get("access_token") or not isinstance(body.get("user"), dict):
            raise IdentityError(IdentityErrorKind.REJECTED, "token grant returned no session")
        return Session(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token") or "",
            user=IdentityUser.from_payload(body["user"]),
        )

    # -- e-mails ---------------------------------------------------------

    async def resend_signup(self, email: str, *, redirect_to: str | None = None) -> None:
        await self._request(
            "POST",
            "/resend",
            headers=self._public_headers(),
            default_error=IdentityErrorKind.REJECTED,
            json={"type": "signup", "email": email},
            params={"redirect_to": redirect_to} if redirect_to else None,
        )

    async def send_password_recovery(self, email: str, *, redirect_to: str | None = None) -> None:
        await self._request(
            "POST",
            "/recover",
            headers=self._public_headers(),
            default_error=IdentityErrorKind.REJECTED,
            json={"email": email},
            params={"redirect_to": redirect_to} if redirect_to else None,
        )

    # -- passwords -------------------------------------------------------

    async def admin_update_password(self, user_id: str, password: str) -> None:
        await self._request(
            "PUT",
            f"/admin/users/{user_id}",
            headers=self._admin_headers(),
            default_error=IdentityErrorKind.REJECTED,
            json={"password": password},
        )

    async def update_password(self, access_token: str, password: str) -> None:
        """Set a new password using a recovery (or session) access token."""
        await self._request(
            "PUT",
            "/user",
            headers=self._public_headers(access_token),
            default_error=IdentityErrorKind.REJECTED,
            json={"password": password},
        )
