"""Turn handling: admission, routing, dispatch, persistence and streaming.

A turn always runs in this order:

1. rate limit check (skipped for auto error resolution resubmissions)
2. user message appended to the conversation
3. intent classification
4. dispatch to exactly one path
5. assistant message appended

Search and price prediction produce a complete answer that is saved before
it is returned as a one-chunk stream. General questions stream from the
model and are saved once the stream has been fully delivered.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import anyio

from catalog_chat.config import Settings
from catalog_chat.errors import CapabilityFailure, MalformedClassification, QuotaExceeded
from catalog_chat.models import AssistantMessage, ChatData, Intent, Message, UserMessage
from catalog_chat.models.api_io import TurnRequest
from catalog_chat.prompts import generation_system_prompt
from catalog_chat.services.chat_store import ConversationStore
from catalog_chat.services.llm_service import LLMService
from catalog_chat.services.rate_limit import FirestoreRateLimiter
from catalog_chat.tools.base import ToolNode
from catalog_chat.tools.router import IntentRouter

logger = logging.getLogger(__name__)

_SEARCH_INTENTS = (Intent.SEMANTIC_SEARCH, Intent.IMAGE_SEARCH)


@dataclass
class TurnResponse:
    intent: Intent
    stream: AsyncIterator[str]


async def _single_chunk(text: str) -> AsyncIterator[str]:
    yield text


class ChatOrchestrator:
    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        router: IntentRouter,
        llm: LLMService,
        search_node: ToolNode,
        price_node: ToolNode,
        rate_limiter: Optional[FirestoreRateLimiter] = None,
    ):
        self.settings = settings
        self.store = store
        self.router = router
        self.llm = llm
        self.search_node = search_node
        self.price_node = price_node
        self.rate_limiter = rate_limiter
        self.timeout = settings.capability_timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def handle_turn(self, request: TurnRequest, caller_id: str) -> TurnResponse:
        """Process one user turn.

        Raises QuotaExceeded, MalformedClassification or CapabilityFailure
        before any output is produced. Nothing is streamed on failure and no
        assistant message is saved.
        """
        chat_id = request.conversation_id

        if request.auto_error_resolved:
            logger.info("Chat %s: auto error resolution turn, skipping rate limit", chat_id)
        elif self.rate_limiter is not None:
            ticket = await self.rate_limiter.admit(caller_id)
            if not ticket.admitted:
                raise QuotaExceeded()

        conversation = await self.store.load(chat_id)
        user_message = UserMessage(
            content=request.message,
            is_auto_error_resolution=request.auto_error_resolved,
        )
        await self.store.append_message(chat_id, user_message, request.chat_data)

        history: List[Message] = [*(conversation.messages if conversation else []), user_message]
        column_names = (conversation.column_names if conversation else None) or (
            request.chat_data.column_names if request.chat_data else None
        )
        model_id = self.settings.resolve_chat_model(request.model_slug)

        try:
            with anyio.fail_after(self.timeout):
                classification = await self.router.classify(request.message)
        except MalformedClassification:
            logger.error("Chat %s: could not parse the router's response", chat_id)
            raise
        except Exception as exc:
            logger.error("Chat %s: router call failed: %s", chat_id, exc, exc_info=True)
            raise CapabilityFailure() from exc

        route = classification.route
        query = classification.parameters.query

        if route in _SEARCH_INTENTS:
            text = await self._run_tool(self.search_node, chat_id, query)
        elif route is Intent.PRICE_PREDICTION:
            text = await self._run_tool(self.price_node, chat_id, query)
        else:
            stream = await self._stream_general(
                chat_id,
                history,
                column_names,
                model_id,
                request.auto_error_resolved,
                request.chat_data,
            )
            return TurnResponse(intent=route, stream=stream)

        await self.store.append_message(
            chat_id,
            AssistantMessage(content=text, follows_auto_error_resolution=request.auto_error_resolved),
            request.chat_data,
        )
        return TurnResponse(intent=route, stream=_single_chunk(text))

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    async def _run_tool(self, node: ToolNode, chat_id: str, query: str) -> str:
        try:
            with anyio.fail_after(self.timeout):
                return await node.run_tool(query=query)
        except Exception as exc:
            logger.error("Chat %s: tool %s failed: %s", chat_id, node.tool_name, exc, exc_info=True)
            raise CapabilityFailure() from exc

    async def _stream_general(
        self,
        chat_id: str,
        history: List[Message],
        column_names: Optional[List[str]],
        model_id: str,
        auto_error_resolved: bool,
        chat_data: Optional[ChatData],
    ) -> AsyncIterator[str]:
        started = time.monotonic()
        chunks = self.llm.stream_chat(model_id, generation_system_prompt(column_names), history)

        # Pull the first chunk here so a provider failure is still a plain error response.
        first: Optional[str] = None
        try:
            with anyio.fail_after(self.timeout):
                first = await anext(chunks)
        except StopAsyncIteration:
            pass
        except Exception as exc:
            logger.error("Chat %s: generation with %s failed: %s", chat_id, model_id, exc, exc_info=True)
            await chunks.aclose()
            raise CapabilityFailure() from exc

        async def relay() -> AsyncIterator[str]:
            parts: List[str] = []
            if first is not None:
                parts.append(first)
                yield first
            try:
                async for piece in chunks:
                    parts.append(piece)
                    yield piece
            except Exception:
                logger.error(
                    "Chat %s: stream broke after %d chunks; assistant message not saved",
                    chat_id,
                    len(parts),
                    exc_info=True,
                )
                raise

            text = "".join(parts)
            if not text.strip():
                logger.warning("Chat %s: model %s returned an empty answer; nothing saved", chat_id, model_id)
                return

            await self.store.append_message(
                chat_id,
                AssistantMessage(
                    content=text,
                    duration=round(time.monotonic() - started, 3),
                    model=model_id,
                    follows_auto_error_resolution=auto_error_resolved,
                ),
                chat_data,
            )

        return relay()
