"""Tenant provisioning and activation."""

import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vanguard_engine.auth.service import SessionValidator
from vanguard_engine.common.exceptions import AuthorizationError, ConflictError, NotFoundError
from vanguard_engine.common.logging import get_logger
from vanguard_engine.rbac.catalog import OWNER_ROLE
from vanguard_engine.rbac.service import RoleStore
from vanguard_engine.tenants.models import TenantModel
from vanguard_engine.users.models import UserModel

logger = get_logger("tenants")


def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


class TenantService:
    """Tenant management operations."""

    def __init__(self, roles: RoleStore, validator: SessionValidator):
        self.role_store = roles
        self.validator = validator

    async def create_tenant(
        self,
        session: AsyncSession,
        name: str,
        creator_id: str,
        slug: str | None = None,
        is_active: bool = True,
    ) -> TenantModel:
        """Create a tenant, seed its default roles and clone the creator as owner.

        The creator keeps their original account; the clone shares email and
        password hash and is linked to it only by email.

        Reconciling the default roles commits the tenant and its roles before
        the owner clone is written.
        """
        creator = await session.get(UserModel, creator_id)
        if creator is None:
            raise NotFoundError("User not found")

        slug = slug or slugify(name)
        existing = await self.get_by_slug(session, slug)
        if existing is not None:
            raise ConflictError(
                f'A tenant with slug "{slug}" already exists. '
                "Please choose a different name or slug."
            )

        tenant = TenantModel(name=name, slug=slug, is_active=is_active)
        session.add(tenant)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(f'A tenant with slug "{slug}" already exists.') from e

        await self.role_store.reconcile_default_roles(session, tenant.id)
        owner_role = await self.role_store.get_role(session, tenant.id, OWNER_ROLE)
        session.add(UserModel(
            tenant_id=tenant.id,
            email=creator.email,
            password_hash=creator.password_hash,
            first_name=creator.first_name,
            last_name=creator.last_name,
            is_active=True,
            roles=[owner_role],
        ))
        await session.flush()
        logger.info(f"Tenant {tenant.slug} created by {creator_id}")
        return tenant

    async def get_by_id(self, session: AsyncSession, tenant_id: str) -> TenantModel | None:
        return await session.get(TenantModel, tenant_id)

    async def get_by_slug(self, session: AsyncSession, slug: str) -> TenantModel | None:
        result = await session.execute(select(TenantModel).where(TenantModel.slug == slug))
        return result.scalar_one_or_none()

    async def get_my_tenant(self, session: AsyncSession, tenant_id: str) -> TenantModel:
        tenant = await self.get_by_id(session, tenant_id)
        if tenant is None or not tenant.is_active:
            raise NotFoundError("Tenant not found")
        return tenant

    async def update_tenant(
        self,
        session: AsyncSession,
        tenant_id: str,
        requester_tenant_id: str,
        name: str | None = None,
        slug: str | None = None,
        is_active: bool | None = None,
    ) -> TenantModel:
        """Update the caller's own tenant.

        Toggling the active flag drops the liveness entries of all the
        tenant's principals, so deactivation revokes their sessions at once.
        """
        if requester_tenant_id != tenant_id:
            raise AuthorizationError("Cannot update another tenant")
        tenant = await self.get_by_id(session, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")

        if slug is not None and slug != tenant.slug:
            clash = await self.get_by_slug(session, slug)
            if clash is not None:
                raise ConflictError(
                    "A tenant with this slug already exists. Please choose a different slug."
                )
            tenant.slug = slug
        if name is not None:
            tenant.name = name
        toggled = is_active is not None and is_active != tenant.is_active
        if is_active is not None:
            tenant.is_active = is_active

        await session.commit()
        if toggled:
            result = await session.execute(
                select(UserModel.id).where(UserModel.tenant_id == tenant_id)
            )
            user_ids = list(result.scalars().all())
            await self.validator.invalidate(*user_ids)
            logger.info(
                f"Tenant {tenant_id} set active={tenant.is_active}; "
                f"{len(user_ids)} liveness entries dropped"
            )
        return tenant

    async def ensure_tenant(self, session: AsyncSession, name: str, slug: str) -> TenantModel:
        """Get a tenant by slug, creating it with default roles if absent."""
        tenant = await self.get_by_slug(session, slug)
        if tenant is None:
            tenant = TenantModel(name=name, slug=slug, is_active=True)
            session.add(tenant)
            await session.flush()
            logger.info(f"Tenant {slug} created")
        await self.role_store.reconcile_default_roles(session, tenant.id)
        return tenant
