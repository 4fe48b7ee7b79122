"""Visitor API router."""

from fastapi import APIRouter, Depends, Query

from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.schemas import resolve_page_size
from vanguard_engine.common.security import get_current_claims
from vanguard_engine.visitors.schemas import VisitorCreate, VisitorPage, VisitorResponse

router = APIRouter(prefix="/visitors")


def _get_service():
    from vanguard_engine.deps import get_visitor_service
    return get_visitor_service()


def _get_db():
    from vanguard_engine.deps import get_db
    return get_db()


@router.post("", response_model=VisitorResponse, status_code=201)
async def create_visitor(body: VisitorCreate, claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        visitor = await svc.create_visitor(
            session, claims, **body.model_dump()
        )
        return VisitorResponse.model_validate(visitor)


@router.get("", response_model=VisitorPage)
async def list_visitors(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    search: str | None = None,
    sort_field: str | None = None,
    sort_dir: str = Query("desc", pattern="^(asc|desc)$"),
    claims: SessionClaims = Depends(get_current_claims),
):
    svc = _get_service()
    db = _get_db()
    page_size = resolve_page_size(page_size)
    async with db.get_session() as session:
        rows, total = await svc.list_visitors(
            session, claims, page=page, page_size=page_size,
            search=search, sort_field=sort_field, sort_dir=sort_dir,
        )
        return VisitorPage.build(
            [VisitorResponse.model_validate(v) for v in rows], total, page, page_size
        )


@router.get("/{visitor_id}", response_model=VisitorResponse)
async def get_visitor(visitor_id: str, claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        visitor = await svc.get_visitor(session, claims, visitor_id)
        return VisitorResponse.model_validate(visitor)
