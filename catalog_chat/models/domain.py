from __future__ import annotations

import datetime as _dt
import uuid
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


# --------------------------------------------------------------------------- #
# Conversation messages
# --------------------------------------------------------------------------- #
class _MessageBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    content: str
    created_at: _dt.datetime = Field(default_factory=_utcnow)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("message content must not be empty")
        return v


class UserMessage(_MessageBase):
    role: Literal["user"] = "user"
    is_auto_error_resolution: bool = False


class AssistantMessage(_MessageBase):
    role: Literal["assistant"] = "assistant"
    duration: Optional[float] = None  # seconds
    model: Optional[str] = None
    follows_auto_error_resolution: bool = False


Message = Annotated[Union[UserMessage, AssistantMessage], Field(discriminator="role")]


class Conversation(BaseModel):
    """Serialized as a single blob per conversation id."""

    id: str
    title: Optional[str] = None
    file_name: Optional[str] = None
    column_names: Optional[List[str]] = None
    created_at: Optional[_dt.datetime] = None
    messages: List[Message] = Field(default_factory=list)

    def with_message(self, message: Message) -> "Conversation":
        return self.model_copy(update={"messages": [*self.messages, message]})


class ChatData(BaseModel):
    """Metadata used to seed a conversation created implicitly by an append."""

    file_name: Optional[str] = None
    column_names: Optional[List[str]] = None


# --------------------------------------------------------------------------- #
# Routing
# --------------------------------------------------------------------------- #
class Intent(str, Enum):
    SEMANTIC_SEARCH = "semantic_search"
    IMAGE_SEARCH = "image_search"
    PRICE_PREDICTION = "price_prediction"
    GENERAL_QUESTION = "general_question"
    UNRECOGNIZED = "unrecognized"


class ClassificationParameters(BaseModel):
    query: str = ""


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    intent: Intent
    parameters: ClassificationParameters = Field(default_factory=ClassificationParameters)
    raw_intent: Optional[str] = None

    @property
    def route(self) -> Intent:
        """The path the dispatcher takes; unrecognized intents become general questions."""
        if self.intent is Intent.UNRECOGNIZED:
            return Intent.GENERAL_QUESTION
        return self.intent


# --------------------------------------------------------------------------- #
# Capability results
# --------------------------------------------------------------------------- #
class ProductMatch(BaseModel):
    score: float
    name: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[Union[float, str]] = None
    description: Optional[str] = None


class ProductRecord(BaseModel):
    """Vector index entry written by the ingestion side."""

    id: str
    embedding: List[float]
    name: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = None
    description: Optional[str] = None


class RateLimitTicket(BaseModel):
    caller_id: str
    admitted: bool
    count: int
    limit: int
