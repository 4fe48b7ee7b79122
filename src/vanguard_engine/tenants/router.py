"""Tenant API router."""

from fastapi import APIRouter, Depends

from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.security import get_current_claims, require_permissions
from vanguard_engine.tenants.schemas import TenantCreate, TenantResponse, TenantUpdate

router = APIRouter(prefix="/tenants")


def _get_service():
    from vanguard_engine.deps import get_tenant_service
    return get_tenant_service()


def _get_db():
    from vanguard_engine.deps import get_db
    return get_db()


@router.post("", response_model=TenantResponse, status_code=201)
async def create_tenant(
    body: TenantCreate,
    claims: SessionClaims = Depends(require_permissions("tenant.manage")),
):
    """Open a new tenant; the caller is cloned into it as owner."""
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenant = await svc.create_tenant(
            session, name=body.name, creator_id=claims.sub, slug=body.slug
        )
        return TenantResponse.model_validate(tenant)


@router.get("/me", response_model=TenantResponse)
async def get_my_tenant(claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenant = await svc.get_my_tenant(session, claims.tenant_id)
        return TenantResponse.model_validate(tenant)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    claims: SessionClaims = Depends(require_permissions("tenant.manage")),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenant = await svc.update_tenant(
            session, tenant_id, claims.tenant_id, **body.model_dump(exclude_none=True)
        )
        return TenantResponse.model_validate(tenant)
