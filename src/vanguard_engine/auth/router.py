"""Session API router: login, refresh, tenant switching, profile."""

from fastapi import APIRouter, Depends

from vanguard_engine.auth.schemas import (
    LoginRequest,
    SessionResponse,
    SwitchTenantRequest,
    TenantSummary,
    UserProfile,
)
from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.security import get_current_claims

router = APIRouter(prefix="/auth")


def _get_service():
    from vanguard_engine.deps import get_session_issuer
    return get_session_issuer()


def _get_db():
    from vanguard_engine.deps import get_db
    return get_db()


def _session_response(issued) -> SessionResponse:
    return SessionResponse(
        access_token=issued.token,
        expires_at=issued.claims.exp,
        user=UserProfile(**issued.user),
    )


@router.post("/login", response_model=SessionResponse)
async def login(body: LoginRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        issued = await svc.login(session, body.email, body.password, body.remember_me)
        return _session_response(issued)


@router.post("/refresh", response_model=SessionResponse)
async def refresh(claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        issued = await svc.refresh(session, claims.sub)
        return _session_response(issued)


@router.get("/tenants", response_model=list[TenantSummary])
async def list_tenants(claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenants = await svc.list_accessible_tenants(session, claims.sub)
        return [TenantSummary(**t) for t in tenants]


@router.post("/switch-tenant", response_model=SessionResponse)
async def switch_tenant(
    body: SwitchTenantRequest, claims: SessionClaims = Depends(get_current_claims)
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        issued = await svc.switch_tenant(session, claims.sub, body.tenant_id)
        return _session_response(issued)


@router.get("/me", response_model=UserProfile)
async def me(claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return UserProfile(**await svc.current_profile(session, claims.sub))
