"""Conversation persistence on top of :class:`CloudSqlRepository`.

Each conversation is one serialized blob. Appends are read-modify-write
without a lock or transaction: two turns appending to the same conversation
at the same time can overwrite each other (last writer wins). Conversations
are expected to have a single writer at a time, so this is accepted.

Storage errors never escape this module. They are logged and the caller
continues with an in-memory view of the conversation.
"""

from __future__ import annotations

import datetime as _dt
import logging
import uuid
from typing import Awaitable, Callable, List, Optional

import anyio
from pydantic import ValidationError

from catalog_chat.errors import PersistenceFailure
from catalog_chat.models import ChatData, Conversation, Message
from catalog_chat.services.cloudsql import CloudSqlRepository

logger = logging.getLogger(__name__)

TitleGenerator = Callable[[str], Awaitable[str]]


class ConversationStore:
    def __init__(
        self,
        repo: CloudSqlRepository,
        title_generator: Optional[TitleGenerator] = None,
        max_title_length: int = 50,
    ):
        self.repo = repo
        self.title_generator = title_generator
        self.max_title_length = max_title_length

    async def _call(self, fn, *args):
        # Repository calls block on the DB driver; keep them off the event loop.
        try:
            return await anyio.to_thread.run_sync(fn, *args)
        except Exception as exc:
            raise PersistenceFailure(str(exc)) from exc

    async def _make_title(self, user_question: Optional[str]) -> Optional[str]:
        if not user_question:
            return None
        title = user_question[: self.max_title_length]
        if self.title_generator is None:
            return title
        try:
            return await self.title_generator(user_question)
        except Exception as exc:
            logger.warning("Error generating chat title, using prefix instead: %s", exc)
            return title

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def create(
        self,
        user_question: Optional[str] = None,
        file_name: Optional[str] = None,
        column_names: Optional[List[str]] = None,
    ) -> Conversation:
        """Allocate an empty conversation. Always returns a usable id."""
        conversation = Conversation(
            id=uuid.uuid4().hex,
            title=await self._make_title(user_question),
            file_name=file_name,
            column_names=column_names,
            created_at=_dt.datetime.now(_dt.timezone.utc),
        )
        try:
            await self._call(self.repo.insert_chat, conversation.id, conversation.model_dump_json())
            logger.info("Created chat %s", conversation.id)
        except PersistenceFailure as exc:
            logger.error("Failed to persist chat %s; proceeding without DB: %s", conversation.id, exc)
        return conversation

    async def load(self, chat_id: str) -> Optional[Conversation]:
        """Return the conversation, or None when missing or unreadable."""
        try:
            raw = await self._call(self.repo.fetch_chat, chat_id)
        except PersistenceFailure as exc:
            logger.error("Failed to load chat %s from DB; returning None: %s", chat_id, exc)
            return None
        if raw is None:
            return None
        try:
            return Conversation.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Stored chat %s is not a valid conversation: %s", chat_id, exc)
            return None

    async def append_message(
        self,
        chat_id: str,
        message: Message,
        chat_data: Optional[ChatData] = None,
    ) -> None:
        """Append *message*, creating the conversation from *chat_data* if needed."""
        conversation = await self.load(chat_id)
        if conversation is not None:
            updated = conversation.with_message(message)
            try:
                await self._call(self.repo.update_chat, chat_id, updated.model_dump_json())
            except PersistenceFailure as exc:
                logger.error("Failed to update chat %s in DB; skipping persist: %s", chat_id, exc)
            return

        chat_data = chat_data or ChatData()
        conversation = Conversation(
            id=chat_id,
            file_name=chat_data.file_name,
            column_names=chat_data.column_names,
            created_at=_dt.datetime.now(_dt.timezone.utc),
            messages=[message],
        )
        try:
            await self._call(self.repo.insert_chat, chat_id, conversation.model_dump_json())
            logger.info("Chat %s did not exist; created it with the first message", chat_id)
        except PersistenceFailure as exc:
            logger.error("Failed to insert new chat %s in DB; skipping persist: %s", chat_id, exc)
