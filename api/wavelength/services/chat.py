"""
Chat rooms gated by visibility and participant membership.

Invitations are filtered through the creator's outgoing ``visible`` edges.
After creation every read and write is authorised by the ``participant``
table (admins bypass membership). Membership changes and message writes take
a lock on the room row so a room is only deleted once its last participant is
gone, and never underneath a message being written.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import delete, func, select

from .. import repo
from ..config import CHAT_MAX_MESSAGE_LENGTH, CHAT_MAX_PAGE_SIZE, CHAT_MAX_ROOM_NAME_LENGTH, CHAT_PAGE_SIZE
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import ChatMessage, ChatRoom, Participant, UserAccount, UserVisibility, touch, utcnow
from .encryption import MessageCipher
from .notifications import notify_participants
from .visibility import VisibilityState

logger = logging.getLogger(__name__)

Notifier = Callable[..., int]


UNREADABLE_MESSAGE = "[This message could not be decrypted.]"


def _readable(cipher: MessageCipher, message: ChatMessage) -> str:
    try:
        return cipher.decrypt(message.content)
    except ValueError:
        logger.warning("[chat] message=%s in room=%s could not be decrypted", message.id, message.chat_room_id)
        return UNREADABLE_MESSAGE


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _clean_room_name(name: Any) -> str:
    value = str(name or "").strip()
    if not value:
        raise ValidationError("Room name can not be empty.")
    if len(value) > CHAT_MAX_ROOM_NAME_LENGTH:
        raise ValidationError(f"Room name must be {CHAT_MAX_ROOM_NAME_LENGTH} characters or fewer.")
    return value


def _lock_room(db, room_id: str, *, read: bool = False) -> ChatRoom | None:
    return db.execute(select(ChatRoom).where(ChatRoom.id == str(room_id)).with_for_update(read=read)).scalars().first()


def _participant_ids(db, room_id: str) -> list[str]:
    return [
        str(r)
        for r in db.execute(
            select(Participant.user_id).where(Participant.chat_room_id == str(room_id)).order_by(Participant.id)
        ).scalars().all()
    ]


def is_participant(db, room_id: str, user_id: str) -> bool:
    return db.execute(
        select(Participant.id).where(Participant.chat_room_id == str(room_id), Participant.user_id == str(user_id))
    ).first() is not None


def _require_access(db, room_id: str, user: dict[str, Any]) -> None:
    if repo.is_admin(user):
        return
    if not is_participant(db, room_id, user["id"]):
        raise AuthorizationError("You do not have permission to access this chat room.")


def _room_dict(db, room: ChatRoom) -> dict[str, Any]:
    return {"id": room.id, "name": room.name, "participants": _participant_ids(db, room.id)}


def _delete_room_if_empty(db, room: ChatRoom) -> bool:
    remaining = db.execute(select(func.count(Participant.id)).where(Participant.chat_room_id == room.id)).scalar() or 0
    if remaining:
        return False
    db.execute(delete(ChatMessage).where(ChatMessage.chat_room_id == room.id))
    db.delete(room)
    logger.info("[chat] room=%s deleted after last participant left", room.id)
    return True


def create_room(db, creator_id: str, name: Any, candidate_ids: list[str]) -> dict[str, Any]:
    creator_id = str(creator_id)
    room_name = _clean_room_name(name)
    if not candidate_ids:
        raise ValidationError("At least one participant must be chosen.")

    invitees = [i for i in dict.fromkeys(str(c).strip() for c in candidate_ids) if i and i != creator_id]
    if repo.existing_user_ids(db, invitees) != set(invitees):
        raise ValidationError("One or more participant IDs are invalid.", code="invalid_participants")

    visible: set[str] = set()
    if invitees:
        visible = {
            str(t)
            for t in db.execute(
                select(UserVisibility.target_user_id).where(
                    UserVisibility.source_user_id == creator_id,
                    UserVisibility.target_user_id.in_(invitees),
                    UserVisibility.visibility == VisibilityState.VISIBLE.value,
                )
            ).scalars().all()
        }
    admitted = [i for i in invitees if i in visible]

    room = touch(ChatRoom(name=room_name), created=True)
    db.add(room)
    db.flush()
    for user_id in [creator_id, *admitted]:
        db.add(touch(Participant(chat_room_id=room.id, user_id=user_id), created=True))
    db.commit()

    dropped = len(invitees) - len(admitted)
    logger.info("[chat] room=%s created by %s participants=%s dropped=%s", room.id, creator_id, len(admitted) + 1, dropped)
    return _room_dict(db, room)


def list_rooms(db) -> list[dict[str, Any]]:
    rooms = db.execute(select(ChatRoom).order_by(ChatRoom.created_at.desc())).scalars().all()
    return [_room_dict(db, r) for r in rooms]


def list_user_rooms(db, user_id: str) -> list[dict[str, Any]]:
    rooms = db.execute(
        select(ChatRoom)
        .join(Participant, Participant.chat_room_id == ChatRoom.id)
        .where(Participant.user_id == str(user_id))
        .order_by(ChatRoom.updated_at.desc())
    ).scalars().all()
    return [_room_dict(db, r) for r in rooms]


def get_room(db, room_id: str, user: dict[str, Any]) -> dict[str, Any]:
    room = db.get(ChatRoom, str(room_id))
    if room is None:
        raise NotFoundError("No chat room with that id was found.")
    _require_access(db, room.id, user)
    return _room_dict(db, room)


def rename_room(db, room_id: str, name: Any, user: dict[str, Any]) -> dict[str, Any]:
    room_name = _clean_room_name(name)
    room = _lock_room(db, room_id)
    if room is None:
        raise NotFoundError("No chat room found matching that id.")
    _require_access(db, room.id, user)
    room.name = room_name
    touch(room)
    db.commit()
    return _room_dict(db, room)


def leave_room(db, room_id: str, user_id: str) -> dict[str, Any]:
    room = _lock_room(db, room_id)
    if room is None:
        raise NotFoundError("No chat room with that id.")
    participant = db.execute(
        select(Participant).where(Participant.chat_room_id == room.id, Participant.user_id == str(user_id))
    ).scalars().first()
    if participant is None:
        raise NotFoundError("You are not a participant of this chat room.")

    db.delete(participant)
    db.flush()
    deleted = _delete_room_if_empty(db, room)
    db.commit()
    logger.info("[chat] user=%s left room=%s", user_id, room_id)
    return {"roomId": str(room_id), "roomDeleted": deleted}


def admin_remove_participants(db, room_id: str, participant_ids: list[str]) -> dict[str, Any]:
    ids = list(dict.fromkeys(str(p).strip() for p in participant_ids if str(p or "").strip()))
    if not ids:
        raise ValidationError("Participant list can not be empty.")
    if repo.existing_user_ids(db, ids) != set(ids):
        raise ValidationError("All id's on the list must exist on the database.", code="invalid_participants")

    room = _lock_room(db, room_id)
    if room is None:
        raise NotFoundError("No chat room found with that id.")
    rows = db.execute(
        select(Participant).where(Participant.chat_room_id == room.id, Participant.user_id.in_(ids))
    ).scalars().all()
    if not rows:
        raise ValidationError("None of the users on the list are part of the chat room.")

    for row in rows:
        db.delete(row)
    db.flush()
    deleted = _delete_room_if_empty(db, room)
    db.commit()
    logger.info("[chat] admin removed %s participants from room=%s", len(rows), room_id)
    return {"roomId": str(room_id), "removed": len(rows), "roomDeleted": deleted}


def send_message(
    db,
    room_id: str,
    sender: dict[str, Any],
    content: Any,
    cipher: MessageCipher,
    notifier: Notifier = notify_participants,
) -> dict[str, Any]:
    body = str(content or "").strip()
    if not body:
        raise ValidationError("There must be some message content.")
    if len(body) > CHAT_MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be {CHAT_MAX_MESSAGE_LENGTH} characters or fewer.")

    sender_id = str(sender["id"])
    room = _lock_room(db, room_id, read=True)
    if room is None:
        raise NotFoundError("No chat room was found.")
    if not is_participant(db, room.id, sender_id):
        raise AuthorizationError("You are not a participant of this chat room.")

    message = touch(ChatMessage(chat_room_id=room.id, sender_id=sender_id, content=cipher.encrypt(body)), created=True)
    db.add(message)
    db.flush()
    payload = {
        "id": message.id,
        "roomId": room.id,
        "senderId": sender_id,
        "content": body,
        "createdAt": _as_utc(message.created_at),
    }
    sender_name = " ".join(p for p in (sender.get("first_name"), sender.get("last_name")) if p) or "a participant"
    notice = f"New message in chat room '{room.name}' from {sender_name}."
    db.commit()

    # The message is durable at this point; fan-out failures are reported, not rolled back.
    warnings: list[str] = []
    try:
        notifier(db, payload["roomId"], sender_id, notice, str(payload["id"]))
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("[chat] notification fan-out failed room=%s message=%s", payload["roomId"], payload["id"], exc_info=True)
        warnings.append("notification_delivery_failed")

    return {"message": payload, "warnings": warnings}


def get_messages(
    db,
    room_id: str,
    requester: dict[str, Any],
    cipher: MessageCipher,
    cursor: datetime | None = None,
    page_size: int | None = None,
) -> dict[str, Any]:
    size = CHAT_PAGE_SIZE if page_size is None else int(page_size)
    if size < 1 or size > CHAT_MAX_PAGE_SIZE:
        raise ValidationError(f"pageSize must be between 1 and {CHAT_MAX_PAGE_SIZE}.")

    room = db.get(ChatRoom, str(room_id))
    if room is None:
        raise NotFoundError("No chat room was found.")
    if not repo.is_admin(requester) and not is_participant(db, room.id, requester["id"]):
        raise AuthorizationError("User is unauthorized.")

    before = _as_utc(cursor) or utcnow()
    # One row past the page tells us whether another page exists.
    rows = db.execute(
        select(ChatMessage, UserAccount.first_name, UserAccount.last_name)
        .join(UserAccount, UserAccount.id == ChatMessage.sender_id)
        .where(ChatMessage.chat_room_id == room.id, ChatMessage.created_at < before)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(size + 1)
    ).all()

    has_more = len(rows) > size
    rows = rows[:size]
    messages = [
        {
            "id": m.id,
            "createdAt": _as_utc(m.created_at),
            "content": _readable(cipher, m),
            "sender": {"id": m.sender_id, "firstName": first_name, "lastName": last_name},
        }
        for m, first_name, last_name in rows
    ]
    return {
        "messages": messages,
        "nextCursor": messages[-1]["createdAt"] if messages else None,
        "hasMore": has_more,
    }


def delete_message(db, message_id: int, user: dict[str, Any]) -> None:
    message = db.get(ChatMessage, message_id)
    if message is None:
        raise NotFoundError("No chat message was found with that id.")
    if not repo.is_admin(user):
        if not is_participant(db, message.chat_room_id, user["id"]):
            raise AuthorizationError("User is not authorized.")
        if message.sender_id != str(user["id"]):
            raise AuthorizationError("Only the sender can delete this message.")
    db.delete(message)
    db.commit()
    logger.info("[chat] message=%s deleted by %s", message_id, user["id"])
