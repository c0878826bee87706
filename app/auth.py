from dataclasses import dataclass

from app.models import Profile


@dataclass
class Principal:
    id: int
    email: str | None
    full_name: str | None
    is_admin: bool
    active: bool


def principal_from_profile(profile: Profile) -> Principal:
    return Principal(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name,
        is_admin=profile.is_admin,
        active=profile.active,
    )
