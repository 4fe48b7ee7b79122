"""SQLAlchemy model for visits."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vanguard_engine.common.models import Base, TimestampMixin, generate_uuid
from vanguard_engine.users.models import UserModel
from vanguard_engine.visitors.models import VisitorModel


class VisitStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


class VisitModel(Base, TimestampMixin):
    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenants.id"), nullable=False, index=True
    )
    visitor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("visitors.id"), nullable=False, index=True
    )
    host_user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    purpose: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=VisitStatus.SCHEDULED.value, nullable=False, index=True
    )
    scheduled_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    scheduled_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    check_in_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    check_out_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    qr_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    qr_code: Mapped[str | None] = mapped_column(Text, nullable=True)

    visitor: Mapped[VisitorModel] = relationship(lazy="selectin")
    host: Mapped[UserModel] = relationship(lazy="selectin")
