from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuizOption(CamelModel):
    text: str = ""


class QuizQuestion(CamelModel):
    question_text: str = ""
    options: list[QuizOption] = Field(default_factory=list)
    correct_option_index: int = -1
    score: int = 0


class Quiz(CamelModel):
    score_required: int = 0
    questions: list[QuizQuestion] = Field(default_factory=list)


class QuizSubmitRequest(CamelModel):
    target_user_id: str = ""
    answers: list[int] = Field(default_factory=list)


class TargetRequest(CamelModel):
    target_id: str = ""


class AdminSetVisibilityRequest(CamelModel):
    source: str = ""
    target: str = ""
    state: str = ""


class DiscoverRequest(CamelModel):
    exclude_ids: list[str] = Field(default_factory=list)


class UpdateTagsRequest(CamelModel):
    tags: list[str] = Field(default_factory=list)


class ChatRoomCreateRequest(CamelModel):
    room_name: str = ""
    participant_ids: list[str] = Field(default_factory=list)


class ChatRoomUpdateRequest(CamelModel):
    id: str = ""
    name: str = ""


class RemoveParticipantsRequest(CamelModel):
    room_id: str = ""
    participant_ids: list[str] = Field(default_factory=list)


class ChatMessageCreateRequest(CamelModel):
    room_id: str = ""
    content: str = ""


class ChatMessagesRequest(CamelModel):
    room_id: str = ""
    cursor: datetime | None = None
    page_size: int | None = None


class SystemNotificationRequest(CamelModel):
    target_ids: list[str] = Field(default_factory=list)
    content: str = ""
