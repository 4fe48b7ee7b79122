"""Dependency injection singletons for Vanguard-Engine."""

from vanguard_engine.auth.service import SessionIssuer, SessionValidator
from vanguard_engine.common.cache import Cache, RedisCache
from vanguard_engine.common.config import get_settings
from vanguard_engine.common.database import DatabaseManager
from vanguard_engine.common.ratelimit import RateLimiter
from vanguard_engine.rbac.service import RoleStore
from vanguard_engine.tenants.service import TenantService
from vanguard_engine.users.service import UserService
from vanguard_engine.visitors.service import VisitorService
from vanguard_engine.visits.service import VisitService

_db: DatabaseManager | None = None
_cache: Cache | None = None
_roles: RoleStore | None = None
_issuer: SessionIssuer | None = None
_validator: SessionValidator | None = None
_users: UserService | None = None
_tenants: TenantService | None = None
_visitors: VisitorService | None = None
_visits: VisitService | None = None
_public_scan_limiter: RateLimiter | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_cache() -> Cache:
    global _cache
    if _cache is None:
        _cache = RedisCache(get_settings().redis_url)
    return _cache


def set_cache(cache: Cache) -> None:
    """Install a specific cache implementation (tests, embedding)."""
    global _cache
    _cache = cache


def get_role_store() -> RoleStore:
    global _roles
    if _roles is None:
        _roles = RoleStore(get_settings(), get_cache())
    return _roles


def get_session_issuer() -> SessionIssuer:
    global _issuer
    if _issuer is None:
        _issuer = SessionIssuer(get_settings())
    return _issuer


def get_session_validator() -> SessionValidator:
    global _validator
    if _validator is None:
        _validator = SessionValidator(get_settings(), get_cache())
    return _validator


def get_user_service() -> UserService:
    global _users
    if _users is None:
        _users = UserService(get_settings(), get_role_store(), get_session_validator())
    return _users


def get_tenant_service() -> TenantService:
    global _tenants
    if _tenants is None:
        _tenants = TenantService(get_role_store(), get_session_validator())
    return _tenants


def get_visitor_service() -> VisitorService:
    global _visitors
    if _visitors is None:
        _visitors = VisitorService()
    return _visitors


def get_visit_service() -> VisitService:
    global _visits
    if _visits is None:
        _visits = VisitService(get_settings(), get_cache())
    return _visits


def get_public_scan_limiter() -> RateLimiter:
    global _public_scan_limiter
    if _public_scan_limiter is None:
        settings = get_settings()
        _public_scan_limiter = RateLimiter(
            get_cache(),
            scope="public-scan",
            limit=settings.public_scan_limit,
            window_seconds=settings.public_scan_window,
        )
    return _public_scan_limiter


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _cache, _roles, _issuer, _validator, _users, _tenants
    global _visitors, _visits, _public_scan_limiter
    _db = None
    _cache = None
    _roles = None
    _issuer = None
    _validator = None
    _users = None
    _tenants = None
    _visitors = None
    _visits = None
    _public_scan_limiter = None
