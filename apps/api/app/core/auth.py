from dataclasses import dataclass, field

from jose import JWTError, jwt
from starlette.requests import Request

from app.core.config import get_settings


@dataclass
class AuthUser:
    """Identity attached to lifecycle audit rows. Permission checks live upstream."""

    sub: str
    roles: list[str] = field(default_factory=list)


ANONYMOUS = "anonymous"


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header[len("Bearer ") :] if auth_header.startswith("Bearer ") else ""
    if not token:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        # Attribution only: an unreadable token is recorded as anonymous rather than rejected.
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    roles = payload.get("roles", ["user"])
    if not isinstance(roles, list):
        roles = ["user"]
    return AuthUser(sub=str(payload.get("sub", ANONYMOUS)), roles=[str(role) for role in roles])
