# backend/assurpro/services/reconciliation.py
"""
Keeps identity-provider users and local company profiles in step.

Every authenticated user must end up with exactly one ``entreprises`` row
keyed by the provider's user id. Two things get in the way:

- the new user may not be visible to the database yet, so the insert fails
  its foreign key for a short while after sign-up;
- concurrent first requests for the same user race to insert the row.

Provisioning never fails the calling request. When the row cannot be written
the caller gets a placeholder profile (``persisted=False``) and the row is
created on a later request.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict
from uuid import UUID
import asyncio
import enum
import logging

from ..schemas.auth import EntrepriseProfile
from .identity import IdentityError, IdentityProviderClient, IdentityUser
from .profile_store import ProfileStore, StoreError, StoreErrorKind

logger = logging.getLogger(__name__)

DEFAULT_NOM = "Utilisateur"

Sleep = Callable[[float], Awaitable[Any]]


def _foreign_key_only(error: StoreError) -> bool:
    return error.kind is StoreErrorKind.FOREIGN_KEY_VIOLATION


@dataclass(frozen=True)
class RetryPolicy:
    """Capped-attempt policy for provisioning inserts."""
    attempts: int = 3
    backoff_seconds: float = 0.3
    retryable: Callable[[StoreError], bool] = _foreign_key_only


class ProvisionState(str, enum.Enum):
    PROVISIONED = "provisioned"
    DEGRADED = "degraded"


@dataclass
class ReconciliationResult:
    profile: EntrepriseProfile
    email_verified: bool
    state: ProvisionState
    insert_attempts: int = 0

    @property
    def degraded(self) -> bool:
        return self.state is ProvisionState.DEGRADED


def default_fields(user: IdentityUser) -> Dict[str, Any]:
    """Profile columns derivable from the provider record alone."""
    meta = user.user_metadata or {}
    return {
        "nom": meta.get("nom") or DEFAULT_NOM,
        "email": user.email,
        "telephone": meta.get("telephone") or None,
        "adresse": meta.get("adresse") or None,
        "email_verified": user.email_verified,
    }


def placeholder_profile(user: IdentityUser, fields: Dict[str, Any] | None = None) -> EntrepriseProfile:
    data = {**default_fields(user), **(fields or {})}
    return EntrepriseProfile(
        id=UUID(user.id),
        nom=data["nom"],
        email=data["email"],
        telephone=data.get("telephone"),
        adresse=data.get("adresse"),
        email_verified=user.email_verified,
        persisted=False,
    )


class ProfileReconciler:
    def __init__(
        self,
        store: ProfileStore,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.store = store
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def reconcile(self, user: IdentityUser) -> ReconciliationResult:
        """
        Return the profile for an authenticated user, creating it if needed
        and syncing the stored e-mail verification flag with the provider.
        """
        log_extra = {"user_id": user.id, "step": "reconcile"}
        try:
            profile = await self.store.get(UUID(user.id))
        except StoreError as exc:
            logger.error(
                "Profile lookup failed (%s); serving placeholder", exc.kind.value,
                extra={**log_extra, "error_kind": exc.kind.value},
            )
            return self._degraded(user)

        if profile is None:
            logger.info("No profile row yet; provisioning", extra=log_extra)
            return await self.provision(user)

        profile = await self._sync_email_verified(user, profile)
        return ReconciliationResult(
            profile=profile,
            email_verified=user.email_verified,
            state=ProvisionState.PROVISIONED,
        )

    async def provision(
        self,
        user: IdentityUser,
        fields: Dict[str, Any] | None = None,
        *,
        policy: RetryPolicy | None = None,
        overwrite_existing: bool = False,
    ) -> ReconciliationResult:
        """
        Insert the profile row for ``user``.

        ``fields`` override the provider-derived defaults. When the row
        already exists it is re-read, or overwritten with ``fields`` when
        ``overwrite_existing`` is set (registration re-submitting its form).
        """
        policy = policy or self.policy
        user_id = UUID(user.id)
        data = {**default_fields(user), **(fields or {})}
        data["email_verified"] = user.email_verified

        attempt = 0
        last_error: StoreError | None = None
        while attempt < policy.attempts:
            attempt += 1
            log_extra = {"user_id": user.id, "step": "provision", "attempt": attempt}
            try:
                profile = await self.store.insert(user_id, data)
            except StoreError as exc:
                last_error = exc
            else:
                logger.info("Profile row created", extra=log_extra)
                return ReconciliationResult(
                    profile=profile,
                    email_verified=user.email_verified,
                    state=ProvisionState.PROVISIONED,
                    insert_attempts=attempt,
                )

            if last_error.kind is StoreErrorKind.DUPLICATE_KEY:
                # Lost a race, or the row existed already
                existing = await self._existing_after_duplicate(user, data, overwrite_existing)
                if existing is not None:
                    logger.info("Profile row already present", extra=log_extra)
                    return ReconciliationResult(
                        profile=existing,
                        email_verified=user.email_verified,
                        state=ProvisionState.PROVISIONED,
                        insert_attempts=attempt,
                    )
                break

            if not policy.retryable(last_error) or attempt >= policy.attempts:
                break

            logger.warning(
                "Profile insert rejected (%s); retrying in %.1fs",
                last_error.kind.value, policy.backoff_seconds,
                extra={**log_extra, "error_kind": last_error.kind.value},
            )
            await self._sleep(policy.backoff_seconds)

        kind = last_error.kind.value if last_error else "unknown"
        level = logging.ERROR if last_error and last_error.kind is StoreErrorKind.POLICY_DENIED else logging.WARNING
        logger.log(
            level,
            "Could not create profile row after %d attempt(s) (%s); serving placeholder",
            attempt, kind,
            extra={"user_id": user.id, "step": "provision", "attempt": attempt, "error_kind": kind},
        )
        return self._degraded(user, data, insert_attempts=attempt)

    async def wait_until_visible(
        self,
        identity: IdentityProviderClient,
        user_id: str,
        *,
        policy: RetryPolicy | None = None,
    ) -> bool:
        """Poll the provider's admin API until a fresh user can be read back."""
        policy = policy or self.policy
        for attempt in range(1, policy.attempts + 1):
            try:
                found = await identity.get_user_by_id(user_id)
            except IdentityError as exc:
                logger.warning(
                    "User not yet visible (%s), attempt %d/%d",
                    exc.kind.value, attempt, policy.attempts,
                    extra={"user_id": user_id, "step": "wait_visible", "attempt": attempt},
                )
            else:
                if found.id == user_id:
                    return True
            if attempt < policy.attempts:
                await self._sleep(policy.backoff_seconds)
        return False

    # -- internals -------------------------------------------------------

    async def _existing_after_duplicate(
        self,
        user: IdentityUser,
        data: Dict[str, Any],
        overwrite_existing: bool,
    ) -> EntrepriseProfile | None:
        user_id = UUID(user.id)
        try:
            if overwrite_existing:
                return await self.store.update_fields(user_id, data)
            existing = await self.store.get(user_id)
        except StoreError as exc:
            logger.warning(
                "Re-reading profile after duplicate key failed (%s)", exc.kind.value,
                extra={"user_id": user.id, "step": "provision", "error_kind": exc.kind.value},
            )
            return None
        if existing is None:
            return None
        return await self._sync_email_verified(user, existing)

    async def _sync_email_verified(self, user: IdentityUser, profile: EntrepriseProfile) -> EntrepriseProfile:
        verified = user.email_verified
        if profile.email_verified == verified:
            return profile
        try:
            await self.store.set_email_verified(UUID(user.id), verified)
        except StoreError as exc:
            # The flag is recomputed from the provider on every request
            logger.warning(
                "Could not sync email_verified (%s)", exc.kind.value,
                extra={"user_id": user.id, "step": "sync_email_verified", "error_kind": exc.kind.value},
            )
        return profile.model_copy(update={"email_verified": verified})

    def _degraded(
        self,
        user: IdentityUser,
        fields: Dict[str, Any] | None = None,
        *,
        insert_attempts: int = 0,
    ) -> ReconciliationResult:
        return ReconciliationResult(
            profile=placeholder_profile(user, fields),
            email_verified=user.email_verified,
            state=ProvisionState.DEGRADED,
            insert_attempts=insert_attempts,
        )
