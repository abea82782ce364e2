from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user, require_admin
from ..config import RL_CHAT_MESSAGE_LIMIT, RL_WINDOW_SECONDS
from ..deps import get_db
from ..errors import ValidationError
from ..schemas import (
    ChatMessageCreateRequest,
    ChatMessagesRequest,
    ChatRoomCreateRequest,
    ChatRoomUpdateRequest,
    RemoveParticipantsRequest,
)
from ..services import chat
from ..services.encryption import MessageCipher, get_message_cipher
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()
scaffold_router = APIRouter()

RL_CHAT_MESSAGE = rate_limit_dependency("chat_message", RL_CHAT_MESSAGE_LIMIT, RL_WINDOW_SECONDS)


def _room_id(value: str) -> str:
    room_id = str(value or "").strip()
    if not room_id:
        raise ValidationError("Chat room id can not be empty.")
    return room_id


@scaffold_router.get("/health")
def chat_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "chat"}


@router.post("/chat")
def create_chat_room(payload: ChatRoomCreateRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"room": chat.create_room(db, current_user["id"], payload.room_name, payload.participant_ids)}


@router.get("/chat")
def list_chat_rooms(admin: dict[str, Any] = Depends(require_admin), db=Depends(get_db)) -> dict[str, Any]:
    return {"rooms": chat.list_rooms(db)}


@router.get("/chat/my")
def list_my_chat_rooms(current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"rooms": chat.list_user_rooms(db, current_user["id"])}


@router.put("/chat")
def rename_chat_room(payload: ChatRoomUpdateRequest, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"room": chat.rename_room(db, _room_id(payload.id), payload.name, current_user)}


@router.delete("/chat/leave/{room_id}")
def leave_chat_room(room_id: str, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return chat.leave_room(db, _room_id(room_id), current_user["id"])


@router.post("/chat/admin/removeParticipants")
def admin_remove_participants(payload: RemoveParticipantsRequest, admin: dict[str, Any] = Depends(require_admin), db=Depends(get_db)) -> dict[str, Any]:
    return chat.admin_remove_participants(db, _room_id(payload.room_id), payload.participant_ids)


@router.post("/chat/message", dependencies=[RL_CHAT_MESSAGE])
def send_chat_message(
    payload: ChatMessageCreateRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    db=Depends(get_db),
    cipher: MessageCipher = Depends(get_message_cipher),
) -> dict[str, Any]:
    return chat.send_message(db, _room_id(payload.room_id), current_user, payload.content, cipher)


@router.post("/chat/messages")
def get_chat_messages(
    payload: ChatMessagesRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    db=Depends(get_db),
    cipher: MessageCipher = Depends(get_message_cipher),
) -> dict[str, Any]:
    return chat.get_messages(db, _room_id(payload.room_id), current_user, cipher, cursor=payload.cursor, page_size=payload.page_size)


@router.delete("/chat/messages/{message_id}")
def delete_chat_message(message_id: int, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    if message_id <= 0:
        raise ValidationError("Message id can not be empty.")
    chat.delete_message(db, message_id, current_user)
    return {"status": "deleted", "messageId": message_id}


@router.get("/chat/{room_id}")
def get_chat_room(room_id: str, current_user: dict[str, Any] = Depends(get_current_user), db=Depends(get_db)) -> dict[str, Any]:
    return {"room": chat.get_room(db, _room_id(room_id), current_user)}
