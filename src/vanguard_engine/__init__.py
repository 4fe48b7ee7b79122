"""Vanguard-Engine: multi-tenant access control and visit tracking."""

from vanguard_engine.auth.gate import authorize, check_permissions, check_roles
from vanguard_engine.auth.tokens import SessionClaims, SessionTokenCodec
from vanguard_engine.visits.tokens import generate_token, verify_token

__all__ = [
    "SessionClaims",
    "SessionTokenCodec",
    "authorize",
    "check_permissions",
    "check_roles",
    "generate_token",
    "verify_token",
]
__version__ = "0.1.0"
