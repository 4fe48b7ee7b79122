"""SQLAlchemy model for principals (tenant-scoped user accounts)."""

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vanguard_engine.common.models import Base, TimestampMixin, generate_uuid
from vanguard_engine.rbac.models import RoleModel, user_roles
from vanguard_engine.tenants.models import TenantModel


class UserModel(Base, TimestampMixin):
    """One identity inside one tenant.

    The same person in several tenants is several rows sharing an email.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenants.id"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    phone: Mapped[str] = mapped_column(String(50), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    tenant: Mapped[TenantModel] = relationship(lazy="joined")
    roles: Mapped[list[RoleModel]] = relationship(secondary=user_roles, lazy="selectin")
