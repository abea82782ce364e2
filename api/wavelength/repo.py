from typing import Any, Iterable

from sqlalchemy import select

from .config import MAX_TAG_LENGTH, MAX_USER_TAGS
from .errors import NotFoundError, ValidationError
from .models import UserAccount, UserRole, touch

DEFAULT_ROLE = "user"
ADMIN_ROLE = "admin"


def _user_dict(user: UserAccount, roles: list[str]) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "first_name": user.first_name,
        "last_name": user.last_name,
        "birthday": user.birthday,
        "description": user.description,
        "email": user.email,
        "tags": list(user.tags or []),
        "roles": roles,
    }


def public_profile(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": user["id"],
        "firstName": user.get("first_name"),
        "lastName": user.get("last_name"),
        "birthday": user["birthday"].isoformat() if user.get("birthday") else None,
        "description": user.get("description"),
        "tags": user.get("tags") or [],
    }


def get_user_roles(db, user_id: str) -> list[str]:
    rows = db.execute(select(UserRole.role).where(UserRole.user_id == user_id)).scalars().all()
    roles = {DEFAULT_ROLE}
    roles.update(str(r).strip().lower() for r in rows if r)
    return sorted(roles)


def get_user(db, user_id: str) -> dict[str, Any] | None:
    user = db.get(UserAccount, str(user_id))
    if not user:
        return None
    return _user_dict(user, get_user_roles(db, user.id))


def user_exists(db, user_id: str) -> bool:
    return db.execute(select(UserAccount.id).where(UserAccount.id == str(user_id))).first() is not None


def existing_user_ids(db, user_ids: Iterable[str]) -> set[str]:
    ids = {str(u) for u in user_ids}
    if not ids:
        return set()
    rows = db.execute(select(UserAccount.id).where(UserAccount.id.in_(ids))).scalars().all()
    return {str(r) for r in rows}


def is_admin(user: dict[str, Any]) -> bool:
    return ADMIN_ROLE in (user.get("roles") or [])


def normalize_tags(values: Any) -> list[str]:
    if not isinstance(values, list):
        raise ValidationError("tags must be an array")
    out: list[str] = []
    for value in values:
        tag = str(value or "").strip().lower()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValidationError(f"Each tag must be {MAX_TAG_LENGTH} characters or fewer")
        if tag not in out:
            out.append(tag)
    if len(out) > MAX_USER_TAGS:
        raise ValidationError(f"You can have at most {MAX_USER_TAGS} tags")
    return out


def update_user_tags(db, user_id: str, tags: Any) -> dict[str, Any]:
    cleaned = normalize_tags(tags)
    user = db.get(UserAccount, str(user_id))
    if not user:
        raise NotFoundError("User not found.")
    user.tags = cleaned
    touch(user)
    db.commit()
    return _user_dict(user, get_user_roles(db, user.id))
