import json
import logging
from typing import AsyncIterator, List, Optional, Sequence

from google import genai
from google.genai import types              # pydantic config classes

from catalog_chat.config import Settings, get_settings
from catalog_chat.models import Message
from catalog_chat.models.api_io import SuggestedQuestion
from catalog_chat.prompts import suggested_questions_prompt, title_prompt

logger = logging.getLogger(__name__)

# Gen AI calls the assistant side of a conversation "model"
_ROLE_MAP = {"user": "user", "assistant": "model"}


class LLMService:
    """Wrapper around the Google Gen AI SDK (generation, streaming + embeddings)."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[genai.Client] = None) -> None:
        s = settings or get_settings()

        if client is None:
            logger.info("Initialising Google Gen AI client …")
            # One client for the whole lifetime of the service
            client = genai.Client(
                vertexai=True,
                project=s.gcp_project_id,
                location=s.gcp_location,
            )
        self.client = client

        self.title_model = s.title_model
        self.embedding_model = s.embedding_model
        self.embedding_dimension = s.embedding_dimension

        logger.info("Title     model: %s", self.title_model)
        logger.info("Embedding model: %s", self.embedding_model)

    # ---------- text generation ------------------------------------------------
    async def generate_text(
        self,
        prompt: str,
        model: str,
        *,
        json_output: bool = False,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Blocking (non-streamed) generation. Errors propagate to the caller."""
        cfg = types.GenerateContentConfig(
            response_mime_type="application/json" if json_output else "text/plain",
            max_output_tokens=max_output_tokens,
        )
        try:
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=cfg,
            )
        except Exception as exc:
            logger.error("Gen AI error: %s", exc, exc_info=True)
            raise

        if getattr(resp, "text", None):
            return resp.text

        if resp.candidates:
            parts = resp.candidates[0].content.parts
            if parts and parts[0].text:
                return parts[0].text

        logger.warning("Empty or filtered response: %s", resp)
        return ""

    async def stream_chat(
        self,
        model: str,
        system_instruction: str,
        messages: Sequence[Message],
    ) -> AsyncIterator[str]:
        """Yield text deltas for a chat completion over *messages*."""
        contents = [
            types.Content(
                role=_ROLE_MAP[m.role],
                parts=[types.Part.from_text(text=m.content)],
            )
            for m in messages
        ]
        stream = await self.client.aio.models.generate_content_stream(
            model=model,
            contents=contents,
            config=types.GenerateContentConfig(system_instruction=system_instruction),
        )
        async for chunk in stream:
            if chunk.text:
                yield chunk.text

    async def generate_title(self, user_question: str) -> str:
        title = await self.generate_text(
            title_prompt(user_question),
            self.title_model,
            max_output_tokens=100,
        )
        title = title.strip().strip('"').strip()
        if not title:
            raise ValueError("Title generation returned no text")
        return title

    async def suggest_questions(self, column_names: Sequence[str]) -> List[SuggestedQuestion]:
        raw = await self.generate_text(
            suggested_questions_prompt(column_names),
            self.title_model,
            json_output=True,
        )
        payload = json.loads(raw)
        if not isinstance(payload, list):
            raise ValueError(f"Expected a JSON array of questions, got: {raw[:200]}")
        return [SuggestedQuestion.model_validate(item) for item in payload]

    # ---------- embeddings -----------------------------------------------------

    async def get_embedding(self, text: str) -> List[float]:
        """Return a single embedding vector for *text*."""
        try:
            resp = await self.client.aio.models.embed_content(
                model=self.embedding_model,
                contents=text,
                config=types.EmbedContentConfig(output_dimensionality=self.embedding_dimension),
            )
        except Exception as exc:
            logger.error("Embedding error: %s", exc, exc_info=True)
            raise

        embeddings = getattr(resp, "embeddings", None)
        if embeddings and embeddings[0].values:
            return list(embeddings[0].values)

        raise ValueError(f"Unexpected embed response: {resp}")
