"""Bearer session authentication and authorization dependencies."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vanguard_engine.auth.gate import authorize
from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SessionClaims:
    """FastAPI dependency: validated, live session claims or 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    from vanguard_engine.deps import get_db, get_session_validator
    validator = get_session_validator()
    db = get_db()
    async with db.get_session() as session:
        claims = await validator.validate(session, credentials.credentials)
    if claims is None:
        raise AuthenticationError("Invalid or expired session")
    return claims


def require_permissions(*keys: str):
    """Dependency factory: every listed permission (superadmins bypass)."""

    async def _dependency(claims: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
        authorize(claims, keys)
        return claims

    return _dependency


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def limit_public_scan(request: Request) -> None:
    """Fixed per-address quota on the unauthenticated scan endpoint."""
    from vanguard_engine.deps import get_public_scan_limiter
    await get_public_scan_limiter().hit(client_address(request))
