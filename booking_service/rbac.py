from dataclasses import dataclass

from fastapi import HTTPException, status

ALLOWED_ROLES = {"user", "owner", "admin"}


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, passed explicitly into every booking operation."""

    user_id: int
    roles: tuple[str, ...] = ("user",)

    def has_role(self, *roles: str) -> bool:
        return not {r.lower() for r in roles}.isdisjoint(self.roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role("admin")


def can_manage_venue(actor: Actor, venue_owner_id: int | None) -> bool:
    if actor.is_admin:
        return True
    return actor.has_role("owner") and venue_owner_id == actor.user_id


def require_role(actor: Actor, allowed_roles: list[str]):
    if not actor.roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Roles missing in token",
        )

    if not actor.has_role(*allowed_roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access forbidden for this role",
        )
