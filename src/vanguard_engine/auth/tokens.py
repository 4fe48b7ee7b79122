"""Signed session tokens.

A session token is an itsdangerous URL-safe, timestamped signature over a
fixed claim set. The permission list is a snapshot taken at issue time; it
only changes when the session is refreshed.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

CLAIMS_VERSION = 1
TOKEN_SALT = "access-token"


@dataclass(frozen=True)
class SessionClaims:
    """Decoded access token payload."""

    sub: str
    tenant_id: str
    email: str = ""
    roles: tuple[str, ...] = field(default_factory=tuple)
    permissions: tuple[str, ...] = field(default_factory=tuple)
    is_super_admin: bool = False
    iat: int = 0
    exp: int = 0
    v: int = CLAIMS_VERSION

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["roles"] = list(self.roles)
        payload["permissions"] = list(self.permissions)
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> "SessionClaims | None":
        """Build claims from an untrusted dict; missing optionals become empty."""
        if not isinstance(payload, dict):
            return None
        sub = payload.get("sub")
        tenant_id = payload.get("tenant_id")
        if not isinstance(sub, str) or not sub or not isinstance(tenant_id, str) or not tenant_id:
            return None

        def _strings(value: Any) -> tuple[str, ...]:
            if not isinstance(value, (list, tuple)):
                return ()
            return tuple(v for v in value if isinstance(v, str))

        def _int(value: Any) -> int:
            return value if isinstance(value, int) and not isinstance(value, bool) else 0

        return cls(
            sub=sub,
            tenant_id=tenant_id,
            email=payload.get("email") if isinstance(payload.get("email"), str) else "",
            roles=_strings(payload.get("roles")),
            permissions=_strings(payload.get("permissions")),
            is_super_admin=payload.get("is_super_admin") is True,
            iat=_int(payload.get("iat")),
            exp=_int(payload.get("exp")),
            v=_int(payload.get("v")) or CLAIMS_VERSION,
        )

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return self.exp <= now


class SessionTokenCodec:
    """Sign and verify session tokens with the service secret."""

    def __init__(self, secret_key: str, max_lifetime: int):
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)
        self.max_lifetime = max_lifetime

    def encode(self, claims: SessionClaims) -> str:
        return self._serializer.dumps(claims.to_payload())

    def decode(self, token: str) -> SessionClaims | None:
        """Return claims for a well-signed, unexpired token, else None."""
        if not token or not isinstance(token, str):
            return None
        try:
            payload = self._serializer.loads(token, max_age=self.max_lifetime)
        except (BadSignature, SignatureExpired):
            return None
        claims = SessionClaims.from_payload(payload)
        if claims is None or claims.is_expired():
            return None
        return claims
