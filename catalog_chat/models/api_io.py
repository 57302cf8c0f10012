from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from .domain import ChatData


class TurnRequest(BaseModel):
    conversation_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    model_slug: Optional[str] = None
    auto_error_resolved: bool = False
    chat_data: Optional[ChatData] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class NewChatRequest(BaseModel):
    user_question: str = Field(..., min_length=1)
    file_name: Optional[str] = None
    column_names: Optional[List[str]] = None


class NewChatResponse(BaseModel):
    id: str
    title: Optional[str] = None


class SuggestQuestionsRequest(BaseModel):
    column_names: List[str] = Field(..., min_length=1)


class SuggestedQuestion(BaseModel):
    id: str
    text: str


class ChatModelInfo(BaseModel):
    slug: str
    is_default: bool
