from jose import jwt, JWTError
from fastapi import Request, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import JWT_SECRET, JWT_ALGORITHM
from .rbac import Actor, ALLOWED_ROLES

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")

bearer_scheme = HTTPBearer(auto_error=False)


def _roles_from_payload(payload: dict) -> tuple[str, ...]:
    raw = payload.get("roles")
    if raw is None and payload.get("role"):
        raw = [payload["role"]]
    if raw is None:
        raw = ["user"]
    if not isinstance(raw, list):
        return ()

    roles = []
    for r in raw:
        rr = str(r or "").strip().lower()
        if rr in ALLOWED_ROLES and rr not in roles:
            roles.append(rr)
    return tuple(roles)


def actor_from_payload(payload: dict) -> Actor:
    subject = payload.get("id", payload.get("sub"))
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not identify a user",
        )
    return Actor(user_id=user_id, roles=_roles_from_payload(payload))


def get_current_actor(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    token = None
    if creds and creds.scheme.lower() == "bearer":
        token = creds.credentials

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer token",
        )

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    actor = actor_from_payload(payload)
    request.state.user_sub = actor.user_id
    request.state.user_roles = list(actor.roles)
    return actor
