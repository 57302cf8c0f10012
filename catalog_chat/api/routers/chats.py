import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from catalog_chat.api.deps import get_conversation_store, get_llm_service
from catalog_chat.models import Conversation, Message
from catalog_chat.models.api_io import (
    NewChatRequest,
    NewChatResponse,
    SuggestQuestionsRequest,
    SuggestedQuestion,
)
from catalog_chat.services.chat_store import ConversationStore
from catalog_chat.services.llm_service import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])


@router.post("", response_model=NewChatResponse, status_code=status.HTTP_201_CREATED)
async def create_new_chat(
    body: NewChatRequest,
    store: ConversationStore = Depends(get_conversation_store),
):
    """Creates a new, empty conversation titled after the first question."""
    conversation = await store.create(
        user_question=body.user_question,
        file_name=body.file_name,
        column_names=body.column_names,
    )
    return NewChatResponse(id=conversation.id, title=conversation.title)


@router.post("/questions", response_model=List[SuggestedQuestion])
async def suggest_questions(
    body: SuggestQuestionsRequest,
    llm: LLMService = Depends(get_llm_service),
):
    """Suggests three analysis questions for the uploaded catalog columns."""
    try:
        return await llm.suggest_questions(body.column_names)
    except Exception as e:
        logger.error("Error generating suggested questions: %s", e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to generate questions.")


@router.get("/{chat_id}", response_model=Conversation)
async def get_chat(
    chat_id: str = Path(..., title="The ID of the conversation"),
    store: ConversationStore = Depends(get_conversation_store),
):
    conversation = await store.load(chat_id)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Chat {chat_id} not found.")
    return conversation


@router.get("/{chat_id}/messages", response_model=List[Message])
async def get_messages_for_chat(
    chat_id: str = Path(..., title="The ID of the conversation"),
    store: ConversationStore = Depends(get_conversation_store),
):
    """Retrieves all messages for a conversation in append order."""
    conversation = await store.load(chat_id)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Chat {chat_id} not found.")
    return conversation.messages
