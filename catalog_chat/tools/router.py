from __future__ import annotations

import json
import logging

from pydantic import BaseModel, Field, ValidationError, field_validator

from catalog_chat.errors import MalformedClassification
from catalog_chat.models import ClassificationParameters, ClassificationResult, Intent
from catalog_chat.prompts import router_prompt
from catalog_chat.services.llm_service import LLMService

logger = logging.getLogger(__name__)

_TOOL_INTENTS = (Intent.SEMANTIC_SEARCH, Intent.IMAGE_SEARCH, Intent.PRICE_PREDICTION)


class _RouterOutput(BaseModel):
    intent: str
    parameters: ClassificationParameters = Field(default_factory=ClassificationParameters)

    @field_validator("parameters", mode="before")
    @classmethod
    def _empty_parameters(cls, v):
        # null parameters or a null query mean "no query"
        if v is None:
            return {}
        if isinstance(v, dict) and v.get("query") is None:
            return {**v, "query": ""}
        return v


def parse_classification(raw: str) -> ClassificationResult:
    """Validate the router model's JSON reply.

    Output that is not a JSON object with an ``intent`` raises
    MalformedClassification. Unknown intents, and tool intents without a
    query, are tagged UNRECOGNIZED and routed as general questions.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedClassification(extra_detail=str(exc)) from exc

    if not isinstance(payload, dict) or "intent" not in payload:
        raise MalformedClassification(extra_detail="missing intent")

    try:
        parsed = _RouterOutput.model_validate(payload)
    except ValidationError as exc:
        raise MalformedClassification(extra_detail=str(exc)) from exc

    query = parsed.parameters.query.strip()
    try:
        intent = Intent(parsed.intent)
    except ValueError:
        logger.warning("Router returned unknown intent %r; treating as general question", parsed.intent)
        intent = Intent.UNRECOGNIZED

    if intent in _TOOL_INTENTS and not query:
        logger.warning("Router chose %s without a query; treating as general question", intent.value)
        intent = Intent.UNRECOGNIZED

    return ClassificationResult(
        intent=intent,
        parameters=ClassificationParameters(query=query),
        raw_intent=parsed.intent,
    )


class IntentRouter:
    """LLM-powered router that picks the path for a user message.

    Only the current message is classified; no conversation history is sent.
    """

    def __init__(self, llm: LLMService, model_id: str):
        self.llm = llm
        self.model_id = model_id

    async def classify(self, user_msg: str) -> ClassificationResult:
        raw = await self.llm.generate_text(router_prompt(user_msg), self.model_id, json_output=True)
        logger.debug("Router raw output: %s", raw)

        result = parse_classification(raw)
        logger.info("Router chose %s (query=%r)", result.route.value, result.parameters.query[:50])
        return result
