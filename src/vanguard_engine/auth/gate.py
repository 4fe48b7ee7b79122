"""Authorization gate: permission and role checks over validated claims."""

from typing import Iterable

from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.exceptions import AuthorizationError


class Decision:
    """Outcome of an authorization check."""

    __slots__ = ("allowed", "reason")

    def __init__(self, allowed: bool, reason: str = ""):
        self.allowed = allowed
        self.reason = reason

    def __bool__(self) -> bool:
        return self.allowed

    def __repr__(self) -> str:
        return f"Decision(allowed={self.allowed}, reason={self.reason!r})"


ALLOW = Decision(True)


def check_permissions(claims: SessionClaims, required: Iterable[str]) -> Decision:
    """Superadmins pass; everyone else needs every required permission."""
    if claims.is_super_admin:
        return ALLOW
    missing = sorted(set(required) - set(claims.permissions))
    if missing:
        return Decision(False, f"Missing permissions: {', '.join(missing)}")
    return ALLOW


def check_roles(claims: SessionClaims, roles: Iterable[str]) -> Decision:
    """Any one of ``roles`` is enough. An empty requirement allows."""
    wanted = set(roles)
    if not wanted or wanted & set(claims.roles):
        return ALLOW
    return Decision(False, "Insufficient role")


def check_super_admin(claims: SessionClaims) -> Decision:
    if claims.is_super_admin:
        return ALLOW
    return Decision(False, "Superadmin access required")


def _enforce(decision: Decision, message: str) -> None:
    if not decision.allowed:
        raise AuthorizationError(message)


def authorize(claims: SessionClaims, required: Iterable[str]) -> None:
    _enforce(check_permissions(claims, required), "Insufficient permissions")


def authorize_role(claims: SessionClaims, roles: Iterable[str]) -> None:
    _enforce(check_roles(claims, roles), "Insufficient role")


def authorize_super_admin(claims: SessionClaims) -> None:
    _enforce(check_super_admin(claims), "Superadmin access required")
