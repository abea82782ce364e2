import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from .database import Base

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def touch(row, *, created: bool = False, now: datetime | None = None):
    """Stamp ``updated_at`` (and ``created_at`` for new rows) before a persist."""
    stamp = now or utcnow()
    if created:
        row.created_at = stamp
    row.updated_at = stamp
    return row


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(String(36), primary_key=True, default=_new_id)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    birthday = Column(Date, nullable=True)
    description = Column(Text, nullable=True)
    email = Column(String, nullable=False, unique=True)
    tags = Column(JSONDocument, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class UserRole(Base):
    __tablename__ = "user_role"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    role = Column(String, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)


class Questionnaire(Base):
    __tablename__ = "questionnaire"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, unique=True)
    quiz = Column(JSONDocument, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class QuizScore(Base):
    __tablename__ = "quiz_score"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    quiz_owner_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    match_percent = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "quiz_owner_id", name="uq_quiz_score_pair"),
        Index("idx_quiz_score_owner", "quiz_owner_id"),
    )


class UserVisibility(Base):
    __tablename__ = "user_visibility"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    target_user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    visibility = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("source_user_id", "target_user_id", name="uq_user_visibility_pair"),
        Index("idx_user_visibility_source_state", "source_user_id", "visibility"),
        Index("idx_user_visibility_target", "target_user_id"),
    )


class ChatRoom(Base):
    __tablename__ = "chat_room"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Participant(Base):
    __tablename__ = "participant"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_room_id = Column(String(36), ForeignKey("chat_room.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("chat_room_id", "user_id", name="uq_participant_room_user"),
        Index("idx_participant_user", "user_id"),
    )


class ChatMessage(Base):
    __tablename__ = "chat_message"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_room_id = Column(String(36), ForeignKey("chat_room.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("idx_chat_message_room_created", "chat_room_id", "created_at"),)


class Notification(Base):
    __tablename__ = "notification"

    id = Column(String(36), primary_key=True, default=_new_id)
    sender_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    target_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    object_id = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    type = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("idx_notification_target_created", "target_id", "created_at"),)
