"""Visitor registry."""

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from vanguard_engine.auth.gate import authorize
from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.exceptions import NotFoundError
from vanguard_engine.common.repository import TenantScopedRepository
from vanguard_engine.visitors.models import VisitorModel

VISITOR_SORT_FIELDS = ("first_name", "last_name", "email", "company", "created_at")


class VisitorService:
    """Tenant-scoped visitor records; visits reference them."""

    def __init__(self):
        self.visitors = TenantScopedRepository(VisitorModel)

    async def create_visitor(
        self,
        session: AsyncSession,
        claims: SessionClaims,
        first_name: str,
        last_name: str,
        **fields,
    ) -> VisitorModel:
        authorize(claims, ["visitor.manage"])
        visitor = VisitorModel(
            first_name=first_name,
            last_name=last_name,
            email=fields.get("email"),
            phone=fields.get("phone"),
            company=fields.get("company"),
            document_id=fields.get("document_id"),
            notes=fields.get("notes") or "",
        )
        return await self.visitors.add(session, claims.tenant_id, visitor)

    async def get_visitor(
        self, session: AsyncSession, claims: SessionClaims, visitor_id: str
    ) -> VisitorModel:
        authorize(claims, ["visitor.view"])
        visitor = await self.visitors.get(session, claims.tenant_id, visitor_id)
        if visitor is None:
            raise NotFoundError("Visitor not found")
        return visitor

    async def list_visitors(
        self,
        session: AsyncSession,
        claims: SessionClaims,
        page: int = 1,
        page_size: int = 25,
        search: str | None = None,
        sort_field: str | None = None,
        sort_dir: str = "desc",
    ) -> tuple[list[VisitorModel], int]:
        authorize(claims, ["visitor.view"])
        criteria = []
        term = (search or "").strip()
        if term:
            pattern = f"%{term}%"
            criteria.append(or_(
                VisitorModel.first_name.ilike(pattern),
                VisitorModel.last_name.ilike(pattern),
                VisitorModel.email.ilike(pattern),
                VisitorModel.company.ilike(pattern),
                VisitorModel.document_id.ilike(pattern),
            ))
        field = sort_field if sort_field in VISITOR_SORT_FIELDS else "created_at"
        column = getattr(VisitorModel, field)
        order = column.asc() if sort_dir == "asc" else column.desc()

        rows = await self.visitors.find_all(
            session, claims.tenant_id, *criteria,
            order_by=(order,),
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        total = await self.visitors.count(session, claims.tenant_id, *criteria)
        return rows, total
