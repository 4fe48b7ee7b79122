"""User API router; requires user.manage."""

from fastapi import APIRouter, Depends

from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.security import require_permissions
from vanguard_engine.users.models import UserModel
from vanguard_engine.users.schemas import UserCreate, UserResponse, UserUpdate

router = APIRouter(prefix="/users")

_manage = require_permissions("user.manage")


def _get_service():
    from vanguard_engine.deps import get_user_service
    return get_user_service()


def _get_db():
    from vanguard_engine.deps import get_db
    return get_db()


def _to_response(user: UserModel) -> UserResponse:
    return UserResponse(
        id=user.id,
        tenant_id=user.tenant_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        is_active=user.is_active,
        roles=sorted(r.key for r in user.roles),
        created_at=user.created_at,
    )


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(body: UserCreate, claims: SessionClaims = Depends(_manage)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user = await svc.create_user(
            session,
            claims.tenant_id,
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            role_key=body.role_key,
            is_active=body.is_active,
            phone=body.phone,
        )
        return _to_response(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str, body: UserUpdate, claims: SessionClaims = Depends(_manage)
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        if body.is_active is None:
            user = await svc.get_user(session, claims.tenant_id, user_id)
        else:
            user = await svc.set_active(session, claims.tenant_id, user_id, body.is_active)
        return _to_response(user)
