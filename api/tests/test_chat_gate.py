from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from wavelength import repo
from wavelength.errors import AuthorizationError, NotFoundError, ValidationError
from wavelength.models import ChatMessage, Notification, touch
from wavelength.services import chat, visibility


@pytest.fixture
def trio(db, make_user):
    """Creator who can see ``friend`` but has dismissed ``stranger``."""
    creator = make_user("Casey", "Creator")
    friend = make_user("Frankie", "Friend")
    stranger = make_user("Sam", "Stranger")
    visibility.set_visibility(db, creator, friend, "visible")
    visibility.dismiss_user(db, creator, stranger)
    return creator, friend, stranger


def _user(db, user_id):
    return repo.get_user(db, user_id)


def _seed_messages(db, cipher, room_id, sender_id, count):
    base = datetime.now(timezone.utc) - timedelta(hours=1)
    for i in range(count):
        db.add(
            touch(
                ChatMessage(chat_room_id=room_id, sender_id=sender_id, content=cipher.encrypt(f"message {i}")),
                created=True,
                now=base + timedelta(seconds=i),
            )
        )
    db.commit()


def test_invites_filtered_to_visible_edges(db, trio):
    creator, friend, stranger = trio

    room = chat.create_room(db, creator, "Weekend plans", [friend, stranger, creator, friend])

    assert room["participants"] == [creator, friend]


def test_invite_list_validation(db, trio):
    creator, friend, _ = trio

    with pytest.raises(ValidationError):
        chat.create_room(db, creator, "Empty", [])
    with pytest.raises(ValidationError):
        chat.create_room(db, creator, "", [friend])
    with pytest.raises(ValidationError):
        chat.create_room(db, creator, "Ghosts", [friend, "missing-user"])


def test_creator_alone_when_nobody_visible(db, trio):
    creator, _, stranger = trio
    room = chat.create_room(db, creator, "Solo", [stranger])
    assert room["participants"] == [creator]


def test_send_requires_membership_and_encrypts(db, trio, cipher):
    creator, friend, stranger = trio
    room = chat.create_room(db, creator, "Weekend plans", [friend])

    with pytest.raises(AuthorizationError):
        chat.send_message(db, room["id"], _user(db, stranger), "let me in", cipher)
    with pytest.raises(NotFoundError):
        chat.send_message(db, "missing-room", _user(db, creator), "hello", cipher)
    with pytest.raises(ValidationError):
        chat.send_message(db, room["id"], _user(db, creator), "   ", cipher)

    result = chat.send_message(db, room["id"], _user(db, creator), "hello there", cipher)
    assert result["warnings"] == []
    assert result["message"]["content"] == "hello there"

    stored = db.get(ChatMessage, result["message"]["id"])
    assert stored.content != "hello there"
    assert cipher.decrypt(stored.content) == "hello there"


def test_send_notifies_other_participants(db, trio, cipher):
    creator, friend, _ = trio
    room = chat.create_room(db, creator, "Weekend plans", [friend])

    chat.send_message(db, room["id"], _user(db, creator), "hello", cipher)

    rows = db.execute(select(Notification)).scalars().all()
    assert [n.target_id for n in rows] == [friend]
    assert rows[0].content == "New message in chat room 'Weekend plans' from Casey Creator."


def test_notification_failure_keeps_message(db, trio, cipher):
    creator, friend, _ = trio
    room = chat.create_room(db, creator, "Weekend plans", [friend])

    def broken_notifier(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    result = chat.send_message(db, room["id"], _user(db, creator), "still here", cipher, notifier=broken_notifier)

    assert result["warnings"] == ["notification_delivery_failed"]
    assert db.execute(select(func.count(ChatMessage.id))).scalar() == 1
    assert db.execute(select(func.count(Notification.id))).scalar() == 0


def test_message_pages_walk_backwards(db, trio, cipher):
    creator, friend, _ = trio
    room = chat.create_room(db, creator, "History", [friend])
    _seed_messages(db, cipher, room["id"], creator, 5)
    reader = _user(db, friend)

    first = chat.get_messages(db, room["id"], reader, cipher, page_size=2)
    assert [m["content"] for m in first["messages"]] == ["message 4", "message 3"]
    assert first["hasMore"] is True
    assert first["messages"][0]["sender"]["firstName"] == "Casey"

    second = chat.get_messages(db, room["id"], reader, cipher, cursor=first["nextCursor"], page_size=2)
    assert [m["content"] for m in second["messages"]] == ["message 2", "message 1"]
    assert second["hasMore"] is True

    last = chat.get_messages(db, room["id"], reader, cipher, cursor=second["nextCursor"], page_size=2)
    assert [m["content"] for m in last["messages"]] == ["message 0"]
    assert last["hasMore"] is False


def test_message_page_guards(db, trio, cipher):
    creator, friend, stranger = trio
    room = chat.create_room(db, creator, "History", [friend])

    with pytest.raises(AuthorizationError):
        chat.get_messages(db, room["id"], _user(db, stranger), cipher)
    with pytest.raises(NotFoundError):
        chat.get_messages(db, "missing-room", _user(db, creator), cipher)
    with pytest.raises(ValidationError):
        chat.get_messages(db, room["id"], _user(db, creator), cipher, page_size=0)

    empty = chat.get_messages(db, room["id"], _user(db, creator), cipher)
    assert empty == {"messages": [], "nextCursor": None, "hasMore": False}


def test_last_participant_leaving_deletes_room(db, trio, cipher):
    creator, friend, _ = trio
    room = chat.create_room(db, creator, "Short lived", [friend])
    chat.send_message(db, room["id"], _user(db, creator), "bye", cipher)

    assert chat.leave_room(db, room["id"], creator)["roomDeleted"] is False
    with pytest.raises(NotFoundError):
        chat.leave_room(db, room["id"], creator)

    assert chat.leave_room(db, room["id"], friend)["roomDeleted"] is True
    with pytest.raises(NotFoundError):
        chat.get_messages(db, room["id"], _user(db, friend), cipher)
    assert db.execute(select(func.count(ChatMessage.id))).scalar() == 0


def test_admin_remove_participants(db, trio, make_user):
    creator, friend, stranger = trio
    room = chat.create_room(db, creator, "Moderated", [friend])

    with pytest.raises(ValidationError):
        chat.admin_remove_participants(db, room["id"], [stranger])
    with pytest.raises(ValidationError):
        chat.admin_remove_participants(db, room["id"], ["missing-user"])

    result = chat.admin_remove_participants(db, room["id"], [friend])
    assert result == {"roomId": room["id"], "removed": 1, "roomDeleted": False}

    result = chat.admin_remove_participants(db, room["id"], [creator])
    assert result["roomDeleted"] is True


def test_room_access_and_rename(db, trio, make_user):
    creator, friend, stranger = trio
    admin = _user(db, make_user("Ada", "Admin", roles=("admin",)))
    room = chat.create_room(db, creator, "Original", [friend])

    with pytest.raises(AuthorizationError):
        chat.get_room(db, room["id"], _user(db, stranger))
    with pytest.raises(NotFoundError):
        chat.get_room(db, "missing-room", _user(db, creator))
    assert chat.get_room(db, room["id"], admin)["name"] == "Original"

    renamed = chat.rename_room(db, room["id"], "  Renamed  ", _user(db, friend))
    assert renamed["name"] == "Renamed"
    with pytest.raises(AuthorizationError):
        chat.rename_room(db, room["id"], "Hijacked", _user(db, stranger))

    assert [r["id"] for r in chat.list_user_rooms(db, friend)] == [room["id"]]
    assert chat.list_user_rooms(db, stranger) == []


def test_delete_message_permissions(db, trio, cipher, make_user):
    creator, friend, _ = trio
    admin = _user(db, make_user("Ada", "Admin", roles=("admin",)))
    room = chat.create_room(db, creator, "Cleanup", [friend])
    first = chat.send_message(db, room["id"], _user(db, creator), "one", cipher)["message"]["id"]
    second = chat.send_message(db, room["id"], _user(db, creator), "two", cipher)["message"]["id"]

    with pytest.raises(AuthorizationError):
        chat.delete_message(db, first, _user(db, friend))

    chat.delete_message(db, first, _user(db, creator))
    chat.delete_message(db, second, admin)
    with pytest.raises(NotFoundError):
        chat.delete_message(db, second, admin)


def test_chat_routes(client, make_user, auth_headers, session_factory):
    creator = make_user("Casey")
    friend = make_user("Frankie")
    outsider = make_user("Sam")
    with session_factory() as s:
        visibility.set_visibility(s, creator, friend, "visible")

    res = client.post("/chat", json={"roomName": "Plans", "participantIds": [friend, outsider]}, headers=auth_headers(creator))
    assert res.status_code == 200
    room = res.json()["room"]
    assert room["participants"] == [creator, friend]

    res = client.post("/chat/message", json={"roomId": room["id"], "content": "hi"}, headers=auth_headers(outsider))
    assert res.status_code == 401

    res = client.post("/chat/message", json={"roomId": room["id"], "content": "hi"}, headers=auth_headers(creator))
    assert res.status_code == 200
    assert res.json()["warnings"] == []

    res = client.post("/chat/messages", json={"roomId": room["id"], "pageSize": 5}, headers=auth_headers(friend))
    assert [m["content"] for m in res.json()["messages"]] == ["hi"]

    assert client.get(f"/chat/{room['id']}", headers=auth_headers(outsider)).status_code == 401
    assert client.get("/chat", headers=auth_headers(creator)).status_code == 403
    assert len(client.get("/chat/my", headers=auth_headers(friend)).json()["rooms"]) == 1

    assert client.get("/notifications/count", headers=auth_headers(friend)).json() == {"count": 1}

    assert client.delete(f"/chat/leave/{room['id']}", headers=auth_headers(creator)).json()["roomDeleted"] is False
    assert client.delete(f"/chat/leave/{room['id']}", headers=auth_headers(friend)).json()["roomDeleted"] is True
    assert client.get(f"/chat/{room['id']}", headers=auth_headers(friend)).status_code == 404


def test_undecryptable_message_gets_placeholder(db, trio, cipher):
    creator, friend, _ = trio
    room = chat.create_room(db, creator, "Mixed", [friend])
    _seed_messages(db, cipher, room["id"], creator, 1)
    db.add(touch(ChatMessage(chat_room_id=room["id"], sender_id=creator, content="not-a-token"), created=True))
    db.commit()

    page = chat.get_messages(db, room["id"], _user(db, friend), cipher)

    assert [m["content"] for m in page["messages"]] == [chat.UNREADABLE_MESSAGE, "message 0"]
