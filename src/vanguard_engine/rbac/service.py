"""Role store: permission catalog bootstrap, default role reconciliation, role reads."""

import asyncio
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vanguard_engine.common.cache import Cache
from vanguard_engine.common.config import VanguardSettings
from vanguard_engine.common.exceptions import NotFoundError
from vanguard_engine.common.logging import get_logger
from vanguard_engine.common.repository import TenantScopedRepository
from vanguard_engine.rbac.catalog import DEFAULT_ROLES, PERMISSION_KEYS, describe_permission
from vanguard_engine.rbac.models import PermissionModel, RoleModel
from vanguard_engine.tenants.models import TenantModel

logger = get_logger("rbac")


def roles_cache_key(tenant_id: str) -> str:
    return f"rbac:roles:{tenant_id}"


def role_to_dict(role: RoleModel) -> dict[str, Any]:
    return {
        "id": role.id,
        "key": role.key,
        "name": role.name,
        "description": role.description,
        "permissions": sorted(p.key for p in role.permissions),
    }


class RoleStore:
    """Tenant-scoped roles on top of the global permission catalog."""

    def __init__(self, settings: VanguardSettings, cache: Cache):
        self.settings = settings
        self.cache = cache
        self.roles = TenantScopedRepository(RoleModel)

    # ── Catalog ──

    async def ensure_catalog(self, session: AsyncSession) -> list[str]:
        """Insert catalog keys missing from storage. Returns the keys created."""
        result = await session.execute(select(PermissionModel.key))
        existing = set(result.scalars().all())
        missing = [key for key in PERMISSION_KEYS if key not in existing]
        for key in missing:
            session.add(PermissionModel(key=key, description=describe_permission(key)))
        if missing:
            await session.flush()
            logger.info(f"Permission catalog: inserted {len(missing)} new keys")
        return missing

    async def _permissions_by_key(self, session: AsyncSession) -> dict[str, PermissionModel]:
        result = await session.execute(select(PermissionModel))
        return {p.key: p for p in result.scalars().all()}

    async def _commit_and_invalidate(self, session: AsyncSession, tenant_id: str) -> None:
        # Invalidate after commit, never before.
        await session.commit()
        await self.cache.delete(roles_cache_key(tenant_id))

    # ── Default roles ──

    async def reconcile_default_roles(self, session: AsyncSession, tenant_id: str) -> int:
        """Create missing default roles and add missing grants to existing ones.

        Grants added by hand to a default role are left alone. Returns the
        number of permission links written.
        """
        by_key = await self._permissions_by_key(session)
        existing = {r.key: r for r in await self.roles.find_all(session, tenant_id)}
        added = 0

        for role_key, definition in DEFAULT_ROLES.items():
            wanted = [by_key[k] for k in definition.permissions if k in by_key]
            role = existing.get(role_key)
            if role is None:
                role = RoleModel(
                    key=role_key,
                    name=definition.name,
                    description=definition.description,
                    permissions=wanted,
                )
                await self.roles.add(session, tenant_id, role)
                added += len(wanted)
                continue

            have = {p.key for p in role.permissions}
            missing = [p for p in wanted if p.key not in have]
            if missing:
                role.permissions.extend(missing)
                added += len(missing)

        await self._commit_and_invalidate(session, tenant_id)
        return added

    async def reconcile_all_tenants(self, db) -> dict[str, Any]:
        """Reconcile every tenant in small concurrent batches.

        Each tenant runs in its own session; a failing tenant is logged and
        reported, the rest of its batch carries on.
        """
        async with db.get_session() as session:
            result = await session.execute(select(TenantModel.id))
            tenant_ids = list(result.scalars().all())

        async def _one(tenant_id: str) -> None:
            async with db.get_session() as session:
                await self.reconcile_default_roles(session, tenant_id)

        batch_size = max(1, self.settings.role_sync_batch_size)
        failed: list[str] = []
        for i in range(0, len(tenant_ids), batch_size):
            batch = tenant_ids[i:i + batch_size]
            outcomes = await asyncio.gather(
                *(_one(t) for t in batch), return_exceptions=True
            )
            for tenant_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    failed.append(tenant_id)
                    logger.error(
                        f"Default role reconciliation failed for tenant {tenant_id}: {outcome}"
                    )

        logger.info(
            f"Default roles reconciled for {len(tenant_ids) - len(failed)} tenants "
            f"({len(failed)} failed)"
        )
        return {"reconciled": len(tenant_ids) - len(failed), "failed": failed}

    # ── Reads ──

    async def roles_for_tenant(self, session: AsyncSession, tenant_id: str) -> list[dict[str, Any]]:
        cache_key = roles_cache_key(tenant_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        roles = await self.roles.find_all(session, tenant_id, order_by=(RoleModel.key,))
        data = [role_to_dict(r) for r in roles]
        await self.cache.set(cache_key, data, self.settings.roles_cache_ttl)
        return data

    async def get_role(self, session: AsyncSession, tenant_id: str, key: str) -> RoleModel:
        role = await self.roles.find_one(session, tenant_id, RoleModel.key == key)
        if role is None:
            raise NotFoundError(f"Role {key} not found")
        return role

    # ── Grants ──

    async def grant_permission(
        self, session: AsyncSession, tenant_id: str, role_key: str, permission_key: str
    ) -> RoleModel:
        """Add a grant to a role. Sessions already issued keep their snapshot."""
        role = await self.get_role(session, tenant_id, role_key)
        by_key = await self._permissions_by_key(session)
        permission = by_key.get(permission_key)
        if permission is None:
            raise NotFoundError(f"Permission {permission_key} not found")
        if all(p.key != permission_key for p in role.permissions):
            role.permissions.append(permission)
        await self._commit_and_invalidate(session, tenant_id)
        return role

    async def revoke_permission(
        self, session: AsyncSession, tenant_id: str, role_key: str, permission_key: str
    ) -> RoleModel:
        role = await self.get_role(session, tenant_id, role_key)
        role.permissions = [p for p in role.permissions if p.key != permission_key]
        await self._commit_and_invalidate(session, tenant_id)
        return role
