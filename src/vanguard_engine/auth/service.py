"""Session issuing and validation."""

import time
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vanguard_engine.auth.passwords import verify_password
from vanguard_engine.auth.tokens import SessionClaims, SessionTokenCodec
from vanguard_engine.common.cache import Cache
from vanguard_engine.common.config import VanguardSettings
from vanguard_engine.common.exceptions import AuthenticationError, AuthorizationError
from vanguard_engine.common.logging import get_logger
from vanguard_engine.rbac.catalog import permissions_from_roles
from vanguard_engine.tenants.models import TenantModel
from vanguard_engine.users.models import UserModel

logger = get_logger("auth")


def liveness_cache_key(principal_id: str) -> str:
    return f"auth:active:{principal_id}"


def auth_profile(user: UserModel) -> dict[str, Any]:
    """Flat view of a principal with its current roles and permissions."""
    return {
        "id": user.id,
        "email": user.email,
        "tenant_id": user.tenant_id,
        "tenant_name": user.tenant.name if user.tenant else "",
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_super_admin": user.is_super_admin,
        "roles": sorted(r.key for r in user.roles),
        "permissions": permissions_from_roles(user.roles),
    }


@dataclass
class IssuedSession:
    token: str
    claims: SessionClaims
    user: dict[str, Any] = field(default_factory=dict)


def _codec(settings: VanguardSettings) -> SessionTokenCodec:
    return SessionTokenCodec(
        settings.secret_key,
        max(settings.session_ttl, settings.session_remember_ttl),
    )


class SessionIssuer:
    """Credential checks and token minting."""

    def __init__(self, settings: VanguardSettings):
        self.settings = settings
        self.codec = _codec(settings)

    def issue(self, user: UserModel, remember_me: bool = False) -> IssuedSession:
        profile = auth_profile(user)
        now = int(time.time())
        ttl = self.settings.session_remember_ttl if remember_me else self.settings.session_ttl
        claims = SessionClaims(
            sub=user.id,
            tenant_id=user.tenant_id,
            email=user.email,
            roles=tuple(profile["roles"]),
            permissions=tuple(profile["permissions"]),
            is_super_admin=user.is_super_admin,
            iat=now,
            exp=now + ttl,
        )
        return IssuedSession(token=self.codec.encode(claims), claims=claims, user=profile)

    async def _load_user(self, session: AsyncSession, user_id: str) -> UserModel | None:
        return await session.get(UserModel, user_id)

    async def validate_credentials(
        self, session: AsyncSession, email: str, password: str
    ) -> UserModel | None:
        """Return the active principal for these credentials, or None.

        A principal of an inactive tenant never authenticates, even with the
        right password. When the email exists in several tenants the oldest
        account is the login target.
        """
        result = await session.execute(
            select(UserModel)
            .join(TenantModel, UserModel.tenant_id == TenantModel.id)
            .where(
                UserModel.email == email.strip().lower(),
                UserModel.is_active.is_(True),
                TenantModel.is_active.is_(True),
            )
            .order_by(UserModel.created_at)
            .limit(1)
        )
        user = result.scalars().first()
        if user is None:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    async def login(
        self, session: AsyncSession, email: str, password: str, remember_me: bool = False
    ) -> IssuedSession:
        user = await self.validate_credentials(session, email, password)
        if user is None:
            logger.info("Login rejected")
            raise AuthenticationError()
        return self.issue(user, remember_me)

    async def refresh(self, session: AsyncSession, principal_id: str) -> IssuedSession:
        """Re-issue from current storage state, picking up role changes."""
        user = await self._load_user(session, principal_id)
        if user is None or not user.is_active or not user.tenant.is_active:
            raise AuthenticationError("User or tenant is no longer active")
        return self.issue(user)

    async def current_profile(self, session: AsyncSession, principal_id: str) -> dict[str, Any]:
        user = await self._load_user(session, principal_id)
        if user is None:
            raise AuthenticationError("User not found")
        return auth_profile(user)

    async def list_accessible_tenants(
        self, session: AsyncSession, principal_id: str
    ) -> list[dict[str, str]]:
        """Active tenants where an active account with this email exists."""
        user = await self._load_user(session, principal_id)
        if user is None:
            raise AuthenticationError("User not found")
        result = await session.execute(
            select(TenantModel)
            .join(UserModel, UserModel.tenant_id == TenantModel.id)
            .where(
                UserModel.email == user.email,
                UserModel.is_active.is_(True),
                TenantModel.is_active.is_(True),
            )
            .order_by(TenantModel.name)
        )
        return [
            {"id": t.id, "name": t.name, "slug": t.slug}
            for t in result.scalars().unique().all()
        ]

    async def switch_tenant(
        self, session: AsyncSession, principal_id: str, target_tenant_id: str
    ) -> IssuedSession:
        """Issue a session for the caller's sibling account in another tenant.

        An unknown tenant and a tenant without access look the same.
        """
        user = await self._load_user(session, principal_id)
        if user is None:
            raise AuthenticationError("User not found")
        result = await session.execute(
            select(UserModel)
            .join(TenantModel, UserModel.tenant_id == TenantModel.id)
            .where(
                UserModel.email == user.email,
                UserModel.tenant_id == target_tenant_id,
                UserModel.is_active.is_(True),
                TenantModel.is_active.is_(True),
            )
        )
        target = result.scalars().first()
        if target is None:
            raise AuthorizationError("You do not have access to this tenant")
        logger.info(f"Principal {principal_id} switched to tenant {target_tenant_id}")
        return self.issue(target)


class SessionValidator:
    """Signature/expiry check plus a cached liveness lookup.

    The liveness entry lives in the shared cache so that ``invalidate`` on
    any instance is seen by all of them.
    """

    def __init__(self, settings: VanguardSettings, cache: Cache):
        self.settings = settings
        self.cache = cache
        self.codec = _codec(settings)

    async def is_live(self, session: AsyncSession, claims: SessionClaims) -> bool:
        cache_key = liveness_cache_key(claims.sub)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return bool(cached)

        result = await session.execute(
            select(UserModel.is_active, TenantModel.is_active)
            .join(TenantModel, UserModel.tenant_id == TenantModel.id)
            .where(UserModel.id == claims.sub, UserModel.tenant_id == claims.tenant_id)
        )
        row = result.first()
        active = bool(row and row[0] and row[1])
        await self.cache.set(cache_key, active, self.settings.liveness_cache_ttl)
        return active

    async def validate(self, session: AsyncSession, token: str) -> SessionClaims | None:
        claims = self.codec.decode(token)
        if claims is None:
            return None
        if not await self.is_live(session, claims):
            return None
        return claims

    async def invalidate(self, *principal_ids: str) -> None:
        """Force the next validation of these principals to hit storage."""
        if principal_ids:
            await self.cache.delete(*(liveness_cache_key(p) for p in principal_ids))
