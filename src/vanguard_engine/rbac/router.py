"""Role API router."""

from fastapi import APIRouter, Depends

from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.security import get_current_claims
from vanguard_engine.rbac.schemas import RoleResponse

router = APIRouter(prefix="/roles")


def _get_service():
    from vanguard_engine.deps import get_role_store
    return get_role_store()


def _get_db():
    from vanguard_engine.deps import get_db
    return get_db()


@router.get("", response_model=list[RoleResponse])
async def list_roles(claims: SessionClaims = Depends(get_current_claims)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        roles = await svc.roles_for_tenant(session, claims.tenant_id)
        return [RoleResponse(**r) for r in roles]
