from dataclasses import dataclass

from fastapi import Depends
from jose import JWTError, jwt
from starlette.requests import Request

from app.core.config import get_settings


@dataclass
class AuthUser:
    sub: str
    roles: list[str]
    actor_id: int | None = None


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub="anonymous", roles=["guest"])

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        subject = str(payload.get("sub", "anonymous"))
        roles = payload.get("roles", ["user"])
        if not isinstance(roles, list):
            roles = ["user"]
        actor_id = payload.get("actor_id")
        if isinstance(actor_id, bool) or not isinstance(actor_id, int):
            actor_id = None
        context = getattr(request.state, "context", None)
        if context is not None:
            context.user_id = subject
            context.actor_id = actor_id
        return AuthUser(sub=subject, roles=[str(role) for role in roles], actor_id=actor_id)
    except JWTError:
        # TODO: Replace with strict auth failure once real identity provider is wired.
        return AuthUser(sub="anonymous", roles=["guest"])


def get_actor_id(user: AuthUser = Depends(get_current_user)) -> int:
    if user.actor_id is not None:
        return user.actor_id
    return get_settings().system_actor_id
