# checkout_portal/session.py
"""
Session context for a signed-in portal user.

The backend issues a JWT carrying ``userId``, ``email``, ``name``, ``role``
and ``exp``. The portal doesn't hold the signing key, so the token is only
decoded (not verified) here; the backend checks the signature on every call.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

import jwt

from .models import Role

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Session expired. Please login again."
INVALID_MESSAGE = "Invalid session. Please login again."


class SessionError(Exception):
    pass


@dataclass
class SessionUser:
    id: object
    email: str
    name: str
    role: Optional[Role]

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value if self.role else None,
        }


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise SessionError(INVALID_MESSAGE) from e
    if not isinstance(payload, dict):
        raise SessionError(INVALID_MESSAGE)
    return payload


class SessionContext:
    """Holds the token and the user decoded from it.

    ``init`` validates and installs a token, ``teardown`` clears it. A context
    that failed ``init`` is left torn down.
    """

    def __init__(self):
        self.token: Optional[str] = None
        self.user: Optional[SessionUser] = None

    @classmethod
    def from_token(cls, token: str, now: Optional[float] = None) -> "SessionContext":
        ctx = cls()
        ctx.init(token, now=now)
        return ctx

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def role(self) -> Optional[Role]:
        return self.user.role if self.user else None

    def init(self, token: str, now: Optional[float] = None) -> SessionUser:
        self.teardown()
        payload = decode_token(token)

        now = time.time() if now is None else now
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or exp <= now:
            logger.info("Rejected expired token for %s", payload.get("email"))
            raise SessionError(EXPIRED_MESSAGE)

        self.token = token
        self.user = SessionUser(
            id=payload.get("userId"),
            email=payload.get("email") or "",
            name=payload.get("name") or "",
            role=Role.parse(payload.get("role")),
        )
        return self.user

    def teardown(self) -> None:
        self.token = None
        self.user = None
