"""Principal provisioning and deactivation."""

from sqlalchemy.ext.asyncio import AsyncSession

from vanguard_engine.auth.passwords import hash_password
from vanguard_engine.auth.service import SessionValidator
from vanguard_engine.common.config import VanguardSettings
from vanguard_engine.common.exceptions import ConflictError, NotFoundError
from vanguard_engine.common.logging import get_logger
from vanguard_engine.common.repository import TenantScopedRepository
from vanguard_engine.rbac.catalog import DEFAULT_USER_ROLE, OWNER_ROLE
from vanguard_engine.rbac.service import RoleStore
from vanguard_engine.users.models import UserModel

logger = get_logger("users")


class UserService:
    """Tenant-scoped user accounts."""

    def __init__(self, settings: VanguardSettings, roles: RoleStore, validator: SessionValidator):
        self.settings = settings
        self.role_store = roles
        self.validator = validator
        self.users = TenantScopedRepository(UserModel)

    async def create_user(
        self,
        session: AsyncSession,
        tenant_id: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        role_key: str = DEFAULT_USER_ROLE,
        is_active: bool = True,
        phone: str = "",
    ) -> UserModel:
        email = email.strip().lower()
        existing = await self.users.find_one(session, tenant_id, UserModel.email == email)
        if existing is not None:
            raise ConflictError("User with this email already exists")

        role = await self.role_store.get_role(session, tenant_id, role_key)
        user = UserModel(
            email=email,
            password_hash=hash_password(password, self.settings.bcrypt_rounds),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            is_active=is_active,
            roles=[role],
        )
        await self.users.add(session, tenant_id, user)
        await session.refresh(user, attribute_names=["tenant"])
        return user

    async def get_user(self, session: AsyncSession, tenant_id: str, user_id: str) -> UserModel:
        user = await self.users.get(session, tenant_id, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def set_active(
        self, session: AsyncSession, tenant_id: str, user_id: str, is_active: bool
    ) -> UserModel:
        """Toggle an account. Deactivation is visible to live sessions at once."""
        user = await self.get_user(session, tenant_id, user_id)
        user.is_active = is_active
        # Invalidate after commit, never before.
        await session.commit()
        await self.validator.invalidate(user.id)
        logger.info(f"User {user.id} in tenant {tenant_id} set active={is_active}")
        return user

    async def ensure_super_admin(
        self,
        session: AsyncSession,
        tenant_id: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> tuple[UserModel, bool]:
        """Create a superadmin, or promote the existing account. Returns (user, created)."""
        email = email.strip().lower()
        user = await self.users.find_one(session, tenant_id, UserModel.email == email)
        created = user is None
        if created:
            user = await self.create_user(
                session, tenant_id, email, password,
                first_name=first_name, last_name=last_name, role_key=OWNER_ROLE,
            )
        user.is_super_admin = True
        user.is_active = True
        await session.commit()
        await self.validator.invalidate(user.id)
        logger.info(f"Superadmin {email} {'created' if created else 'promoted'} in tenant {tenant_id}")
        return user, created
