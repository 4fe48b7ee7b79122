"""Visit engine: scheduling, check-in, token check-in, checkout, active list.

Status only moves forward:

    (new) ──schedule──▶ scheduled ──scan──▶ checked_in ──checkout──▶ checked_out
    (new) ──direct check-in────────────────▶ checked_in

Every transition is a conditional UPDATE on the expected status, so two
racing requests cannot both win; the loser sees StateConflictError.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from vanguard_engine.auth.gate import authorize
from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.cache import Cache
from vanguard_engine.common.config import VanguardSettings
from vanguard_engine.common.exceptions import (
    MalformedTokenError,
    NotFoundError,
    StateConflictError,
)
from vanguard_engine.common.logging import get_logger
from vanguard_engine.common.models import utcnow
from vanguard_engine.common.repository import TenantScopedRepository
from vanguard_engine.users.models import UserModel
from vanguard_engine.visitors.models import VisitorModel
from vanguard_engine.visits.models import VisitModel, VisitStatus
from vanguard_engine.visits.tokens import (
    generate_token,
    render_qr_data_url,
    scan_url,
    token_from_scan,
    verify_token,
)

logger = get_logger("visits")

VISIT_SORT_FIELDS = ("created_at", "check_in_at", "check_out_at", "status")

ALREADY_CHECKED_IN = "Visitor is already checked in"
ALREADY_COMPLETED = "Visit has already been completed"


def active_visits_cache_key(tenant_id: str) -> str:
    return f"visits:active:{tenant_id}"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def visit_to_dict(visit: VisitModel) -> dict[str, Any]:
    visitor = visit.visitor
    host = visit.host
    return {
        "id": visit.id,
        "tenant_id": visit.tenant_id,
        "status": visit.status,
        "purpose": visit.purpose,
        "location": visit.location,
        "scheduled_start": _iso(visit.scheduled_start),
        "scheduled_end": _iso(visit.scheduled_end),
        "check_in_at": _iso(visit.check_in_at),
        "check_out_at": _iso(visit.check_out_at),
        "qr_token": visit.qr_token,
        "qr_code": visit.qr_code,
        "created_at": _iso(visit.created_at),
        "visitor": {
            "id": visitor.id,
            "first_name": visitor.first_name,
            "last_name": visitor.last_name,
            "company": visitor.company,
        } if visitor else None,
        "host": {
            "id": host.id,
            "first_name": host.first_name,
            "last_name": host.last_name,
            "email": host.email,
        } if host else None,
    }


class VisitService:
    """Visit state machine gated by the caller's session claims."""

    def __init__(self, settings: VanguardSettings, cache: Cache):
        self.settings = settings
        self.cache = cache
        self.visits = TenantScopedRepository(VisitModel)
        self.visitors = TenantScopedRepository(VisitorModel)
        self.users = TenantScopedRepository(UserModel)

    # ── Helpers ──

    async def _require_parties(
        self, session: AsyncSession, tenant_id: str, visitor_id: str, host_user_id: str
    ) -> None:
        visitor = await self.visitors.get(session, tenant_id, visitor_id)
        if visitor is None:
            raise NotFoundError("Visitor not found")
        host = await self.users.get(session, tenant_id, host_user_id)
        if host is None:
            raise NotFoundError("Host user not found")

    async def _get_visit(self, session: AsyncSession, tenant_id: str, visit_id: str) -> VisitModel:
        visit = await self.visits.get(session, tenant_id, visit_id)
        if visit is None:
            raise NotFoundError("Visit not found")
        return visit

    async def _invalidate_active(self, tenant_id: str) -> None:
        await self.cache.delete(active_visits_cache_key(tenant_id))

    def _verify(self, token: str) -> str:
        check = verify_token(
            token_from_scan(token or ""),
            self.settings.qr_secret,
            tag=self.settings.qr_token_tag,
            mac_length=self.settings.qr_mac_length,
        )
        if not check.valid or not check.visit_id:
            raise MalformedTokenError()
        return check.visit_id

    async def _mark_checked_in(self, session: AsyncSession, visit: VisitModel) -> datetime:
        """scheduled → checked_in as a compare-and-swap on status."""
        if visit.status == VisitStatus.CHECKED_IN.value:
            raise StateConflictError(ALREADY_CHECKED_IN)
        if visit.status == VisitStatus.CHECKED_OUT.value:
            raise StateConflictError(ALREADY_COMPLETED)
        if visit.status != VisitStatus.SCHEDULED.value:
            raise StateConflictError("Visit is not in a valid state for check-in")

        now = utcnow()
        rows = await self.visits.update_where(
            session, visit.tenant_id, visit.id,
            VisitModel.status == VisitStatus.SCHEDULED.value,
            status=VisitStatus.CHECKED_IN.value,
            check_in_at=now,
            updated_at=now,
        )
        if rows == 0:
            # Another request advanced the visit between our read and write.
            raise StateConflictError(ALREADY_CHECKED_IN)
        await session.commit()
        await self._invalidate_active(visit.tenant_id)
        await session.refresh(visit, attribute_names=["status", "check_in_at", "updated_at"])
        return now

    # ── Transitions ──

    async def check_in(
        self,
        session: AsyncSession,
        claims: SessionClaims,
        visitor_id: str,
        host_user_id: str,
        purpose: str | None = None,
        location: str | None = None,
    ) -> VisitModel:
        """Walk-in: create the visit directly in checked_in."""
        authorize(claims, ["visit.checkin"])
        tenant_id = claims.tenant_id
        await self._require_parties(session, tenant_id, visitor_id, host_user_id)

        visit = VisitModel(
            visitor_id=visitor_id,
            host_user_id=host_user_id,
            purpose=purpose,
            location=location,
            status=VisitStatus.CHECKED_IN.value,
            check_in_at=utcnow(),
        )
        await self.visits.add(session, tenant_id, visit)
        await session.commit()
        await self._invalidate_active(tenant_id)
        await session.refresh(visit, attribute_names=["visitor", "host"])
        logger.info(f"Visit {visit.id} checked in directly by {claims.sub}")
        return visit

    async def schedule(
        self,
        session: AsyncSession,
        claims: SessionClaims,
        visitor_id: str,
        host_user_id: str,
        purpose: str | None = None,
        location: str | None = None,
        scheduled_start: datetime | None = None,
        scheduled_end: datetime | None = None,
        generate_token: bool = True,
    ) -> VisitModel:
        authorize(claims, ["visit.checkin"])
        tenant_id = claims.tenant_id
        await self._require_parties(session, tenant_id, visitor_id, host_user_id)

        visit = VisitModel(
            visitor_id=visitor_id,
            host_user_id=host_user_id,
            purpose=purpose,
            location=location,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            status=VisitStatus.SCHEDULED.value,
        )
        await self.visits.add(session, tenant_id, visit)
        await session.refresh(visit, attribute_names=["visitor", "host"])
        if generate_token:
            self._attach_token(visit)
            await session.flush()
        return visit

    def _attach_token(self, visit: VisitModel) -> None:
        token = generate_token(
            visit.id,
            self.settings.qr_secret,
            tag=self.settings.qr_token_tag,
            mac_length=self.settings.qr_mac_length,
        )
        visit.qr_token = token
        visit.qr_code = render_qr_data_url(scan_url(self.settings.app_url, token))

    async def generate_token(
        self, session: AsyncSession, claims: SessionClaims, visit_id: str
    ) -> VisitModel:
        """Sign a check-in token for a scheduled visit and render its QR image."""
        authorize(claims, ["visit.checkin"])
        visit = await self._get_visit(session, claims.tenant_id, visit_id)
        if visit.status != VisitStatus.SCHEDULED.value:
            raise StateConflictError("QR codes can only be generated for scheduled visits")
        self._attach_token(visit)
        await session.flush()
        return visit

    async def scan_token(
        self, session: AsyncSession, claims: SessionClaims, token: str
    ) -> VisitModel:
        """Staff scan: check in the visit named by the token, within the caller's tenant."""
        authorize(claims, ["visit.checkin"])
        visit_id = self._verify(token)
        visit = await self._get_visit(session, claims.tenant_id, visit_id)
        await self._mark_checked_in(session, visit)
        logger.info(f"Visit {visit.id} checked in by token scan ({claims.sub})")
        return visit

    async def public_scan_token(self, session: AsyncSession, token: str) -> dict[str, Any]:
        """Unauthenticated scan: possession of a valid token is the credential.

        The response is limited to what the visitor's own screen needs.
        """
        visit_id = self._verify(token)
        # Untenanted lookup: the MAC binds the visit id, so the tenant comes from the visit.
        visit = await session.get(VisitModel, visit_id)
        if visit is None:
            raise NotFoundError("Visit not found")
        checked_in_at = await self._mark_checked_in(session, visit)
        logger.info(f"Visit {visit.id} checked in by public scan")
        visitor = visit.visitor
        return {
            "success": True,
            "visitor_name": visitor.display_name,
            "company": visitor.company,
            "purpose": visit.purpose,
            "check_in_at": checked_in_at.isoformat(),
        }

    async def checkout(
        self, session: AsyncSession, claims: SessionClaims, visit_id: str
    ) -> VisitModel:
        """Close a visit. A scheduled visit can be closed without ever arriving."""
        authorize(claims, ["visit.checkout"])
        tenant_id = claims.tenant_id
        visit = await self._get_visit(session, tenant_id, visit_id)
        if visit.status == VisitStatus.CHECKED_OUT.value:
            raise StateConflictError("Visit already checked out")

        now = utcnow()
        rows = await self.visits.update_where(
            session, tenant_id, visit.id,
            VisitModel.status.in_([VisitStatus.SCHEDULED.value, VisitStatus.CHECKED_IN.value]),
            status=VisitStatus.CHECKED_OUT.value,
            check_out_at=now,
            updated_at=now,
        )
        if rows == 0:
            raise StateConflictError("Visit already checked out")
        await session.commit()
        await self._invalidate_active(tenant_id)
        await session.refresh(visit, attribute_names=["status", "check_out_at", "updated_at"])
        logger.info(f"Visit {visit.id} checked out by {claims.sub}")
        return visit

    # ── Reads ──

    async def list_active(self, session: AsyncSession, claims: SessionClaims) -> list[dict[str, Any]]:
        """Visits currently on site, newest arrival first. Cached briefly per tenant."""
        authorize(claims, ["visit.view"])
        tenant_id = claims.tenant_id
        cache_key = active_visits_cache_key(tenant_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        visits = await self.visits.find_all(
            session, tenant_id,
            VisitModel.status == VisitStatus.CHECKED_IN.value,
            order_by=(VisitModel.check_in_at.desc(),),
        )
        data = [visit_to_dict(v) for v in visits]
        for item in data:
            # The rendered QR image is large and irrelevant once on site.
            item["qr_code"] = None
        await self.cache.set(cache_key, data, self.settings.active_visits_ttl)
        return data

    async def get_visit(
        self, session: AsyncSession, claims: SessionClaims, visit_id: str
    ) -> VisitModel:
        authorize(claims, ["visit.view"])
        return await self._get_visit(session, claims.tenant_id, visit_id)

    async def list_visits(
        self,
        session: AsyncSession,
        claims: SessionClaims,
        page: int = 1,
        page_size: int = 25,
        status: str | None = None,
        host_user_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        search: str | None = None,
        sort_field: str | None = None,
        sort_dir: str = "desc",
    ) -> tuple[list[VisitModel], int]:
        authorize(claims, ["visit.view"])
        criteria = []
        if status:
            if status == "active":
                status = VisitStatus.CHECKED_IN.value
            criteria.append(VisitModel.status == status)
        if host_user_id:
            criteria.append(VisitModel.host_user_id == host_user_id)
        if date_from:
            criteria.append(VisitModel.created_at >= date_from)
        if date_to:
            criteria.append(VisitModel.created_at <= date_to)
        term = (search or "").strip()
        if term:
            pattern = f"%{term}%"
            criteria.append(or_(
                VisitModel.visitor.has(VisitorModel.first_name.ilike(pattern)),
                VisitModel.visitor.has(VisitorModel.last_name.ilike(pattern)),
                VisitModel.purpose.ilike(pattern),
            ))

        field = sort_field if sort_field in VISIT_SORT_FIELDS else "created_at"
        column = getattr(VisitModel, field)
        order = column.asc() if sort_dir == "asc" else column.desc()

        rows = await self.visits.find_all(
            session, claims.tenant_id, *criteria,
            order_by=(order,),
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        total = await self.visits.count(session, claims.tenant_id, *criteria)
        return rows, total
