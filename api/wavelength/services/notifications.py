from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select

from .. import repo
from ..errors import NotFoundError, ValidationError
from ..models import Notification, Participant, touch

logger = logging.getLogger(__name__)

TYPE_MESSAGE = "message"
TYPE_SYSTEM = "system"


def _notification_dict(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "senderId": n.sender_id,
        "objectId": n.object_id,
        "content": n.content,
        "type": n.type,
        "createdAt": n.created_at,
    }


def notify_participants(db, room_id: str, exclude_sender_id: str, text: str, object_id: str | None = None) -> int:
    """Queue one ``message`` notification per other participant. Flushes; the caller commits."""
    targets = db.execute(
        select(Participant.user_id).where(
            Participant.chat_room_id == str(room_id),
            Participant.user_id != str(exclude_sender_id),
        )
    ).scalars().all()
    for target_id in targets:
        db.add(
            touch(
                Notification(
                    sender_id=str(exclude_sender_id),
                    target_id=str(target_id),
                    object_id=object_id or str(room_id),
                    content=text,
                    type=TYPE_MESSAGE,
                ),
                created=True,
            )
        )
    db.flush()
    return len(targets)


def create_system_notification(db, sender_id: str, target_ids: list[str], content: str) -> int:
    content = str(content or "").strip()
    if not content:
        raise ValidationError("Content can not be empty.")
    targets = list(dict.fromkeys(str(t) for t in target_ids if str(t or "").strip()))
    if not targets:
        raise ValidationError("Target id can not be empty.")
    if repo.existing_user_ids(db, targets) != set(targets):
        raise NotFoundError("Not all users on the list exist.")

    for target_id in targets:
        db.add(
            touch(
                Notification(sender_id=str(sender_id), target_id=target_id, content=content, type=TYPE_SYSTEM),
                created=True,
            )
        )
    db.commit()
    logger.info("[notifications] system notification from %s to %s users", sender_id, len(targets))
    return len(targets)


def list_notifications(db, user_id: str) -> list[dict[str, Any]]:
    rows = db.execute(
        select(Notification)
        .where(Notification.target_id == str(user_id))
        .order_by(Notification.created_at.desc())
    ).scalars().all()
    return [_notification_dict(n) for n in rows]


def count_notifications(db, user_id: str) -> int:
    return int(db.execute(select(func.count(Notification.id)).where(Notification.target_id == str(user_id))).scalar() or 0)
