"""Visit API router."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.schemas import resolve_page_size
from vanguard_engine.common.security import get_current_claims, limit_public_scan
from vanguard_engine.visits.schemas import (
    CheckInRequest,
    PublicScanResponse,
    ScanRequest,
    ScheduleRequest,
    VisitPage,
    VisitResponse,
)
from vanguard_engine.visits.service import visit_to_dict

router = APIRouter(prefix="/visits")


def _get_service():
    from vanguard_engine.deps import get_visit_service
    return get_visit_service()


def _get_db():
    from vanguard_engine.deps import get_db
    return get_db()


@router.post("/checkin", response_model=VisitResponse, status_code=201)
async def check_in(body: CheckInRequest, claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        visit = await svc.check_in(session, claims, **body.model_dump())
        return VisitResponse(**visit_to_dict(visit))


@router.post("/schedule", response_model=VisitResponse, status_code=201)
async def schedule(body: ScheduleRequest, claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        visit = await svc.schedule(session, claims, **body.model_dump())
        return VisitResponse(**visit_to_dict(visit))


@router.post("/scan", response_model=VisitResponse)
async def scan(body: ScanRequest, claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        visit = await svc.scan_token(session, claims, body.token)
        return VisitResponse(**visit_to_dict(visit))


@router.post(
    "/public-scan",
    response_model=PublicScanResponse,
    dependencies=[Depends(limit_public_scan)],
)
async def public_scan(body: ScanRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return PublicScanResponse(**await svc.public_scan_token(session, body.token))


@router.get("/active", response_model=list[VisitResponse])
async def list_active(claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return [VisitResponse(**v) for v in await svc.list_active(session, claims)]


@router.get("", response_model=VisitPage)
async def list_visits(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    status: str | None = Query(None, pattern="^(scheduled|checked_in|checked_out|active)$"),
    host_user_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    search: str | None = None,
    sort_field: str | None = None,
    sort_dir: str = Query("desc", pattern="^(asc|desc)$"),
    claims: SessionClaims = Depends(get_current_claims),
):
    svc = _get_service()
    db = _get_db()
    page_size = resolve_page_size(page_size)
    async with db.get_session() as session:
        rows, total = await svc.list_visits(
            session, claims,
            page=page, page_size=page_size, status=status,
            host_user_id=host_user_id, date_from=date_from, date_to=date_to,
            search=search, sort_field=sort_field, sort_dir=sort_dir,
        )
        return VisitPage.build(
            [VisitResponse(**visit_to_dict(v)) for v in rows], total, page, page_size
        )


@router.post("/{visit_id}/token", response_model=VisitResponse)
async def generate_token(visit_id: str, claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        visit = await svc.generate_token(session, claims, visit_id)
        return VisitResponse(**visit_to_dict(visit))


@router.post("/{visit_id}/checkout", response_model=VisitResponse)
async def checkout(visit_id: str, claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        visit = await svc.checkout(session, claims, visit_id)
        return VisitResponse(**visit_to_dict(visit))
