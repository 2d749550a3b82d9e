"""Records exchanged between the stores, the chat core and the API.

All records serialize with camelCase keys (``isAdminReply``, ``createdAt``...)
which is what the browser client reads, while Python code uses snake_case.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )


# --- durable records ---

class ConversationRecord(CamelModel):
    id: int
    session_id: str
    created_at: datetime
    last_activity: datetime


class MessageRecord(CamelModel):
    id: int
    conversation_id: int
    content: str
    is_admin_reply: bool = False
    created_at: datetime


class AdminRecord(CamelModel):
    id: int
    username: str
    password_hash: str
    created_at: datetime


class WebSession(CamelModel):
    session_id: str
    is_admin: bool = False


class ConversationSummary(ConversationRecord):
    message_count: int = 0
    last_message: Optional[MessageRecord] = None


class ConversationDetail(CamelModel):
    conversation: ConversationRecord
    messages: List[MessageRecord]


# --- real-time envelopes ---

class JoinEvent(CamelModel):
    type: Literal["join"]
    session_id: str = ""
    is_admin: bool = False


class ChatMessageEvent(CamelModel):
    type: Literal["message"]
    content: str
    # only admins address a conversation explicitly
    conversation_id: Optional[int] = None


InboundEvent = TypeAdapter(
    Annotated[Union[JoinEvent, ChatMessageEvent], Field(discriminator="type")]
)


class MessageEvent(CamelModel):
    """Outbound push for a freshly persisted message."""
    type: Literal["message"] = "message"
    id: int
    content: str
    is_admin_reply: bool
    created_at: datetime
    conversation_id: int

    @classmethod
    def from_record(cls, message: MessageRecord) -> "MessageEvent":
        return cls(
            id=message.id,
            content=message.content,
            is_admin_reply=message.is_admin_reply,
            created_at=message.created_at,
            conversation_id=message.conversation_id,
        )


class JoinedEvent(CamelModel):
    type: Literal["joined"] = "joined"
    role: Literal["visitor", "admin"]
    conversation_id: Optional[int] = None


class ErrorEvent(CamelModel):
    type: Literal["error"] = "error"
    kind: str
    error: str = Field(..., description="Human readable reason")
