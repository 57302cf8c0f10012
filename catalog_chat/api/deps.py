"""Process wide singletons handed to every request.

Each getter is cached, so the Gen AI client, the Cloud SQL pool, the
BigQuery client and the Firestore client are built once per process and
shared by all turns.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Request
from google.cloud import firestore

from catalog_chat.config import get_settings
from catalog_chat.services.chat_store import ConversationStore
from catalog_chat.services.cloudsql import CloudSqlRepository
from catalog_chat.services.llm_service import LLMService
from catalog_chat.services.orchestrator import ChatOrchestrator
from catalog_chat.services.rate_limit import FirestoreRateLimiter
from catalog_chat.tools.bigquery_node import BigQueryPricePredictor, PricePredictionNode
from catalog_chat.tools.router import IntentRouter
from catalog_chat.tools.search_node import ProductSearchNode

logger = logging.getLogger(__name__)


@lru_cache()
def get_llm_service() -> LLMService:
    logger.info("Initializing LLMService...")
    return LLMService(get_settings())


@lru_cache()
def get_cloudsql_repo() -> CloudSqlRepository:
    logger.info("Initializing CloudSqlRepository...")
    return CloudSqlRepository(settings=get_settings())


@lru_cache()
def get_conversation_store() -> ConversationStore:
    settings = get_settings()
    return ConversationStore(
        get_cloudsql_repo(),
        title_generator=get_llm_service().generate_title,
        max_title_length=settings.max_chat_title_length,
    )


@lru_cache()
def get_rate_limiter() -> Optional[FirestoreRateLimiter]:
    settings = get_settings()
    if not settings.rate_limit_enabled:
        logger.warning("Rate limiting disabled by configuration")
        return None
    logger.info("Initializing FirestoreRateLimiter...")
    return FirestoreRateLimiter(
        firestore.Client(project=settings.gcp_project_id or None),
        daily_limit=settings.daily_message_limit,
        collection=settings.rate_limit_collection,
    )


@lru_cache()
def get_orchestrator() -> ChatOrchestrator:
    settings = get_settings()
    llm = get_llm_service()
    logger.info("Initializing ChatOrchestrator...")
    return ChatOrchestrator(
        settings=settings,
        store=get_conversation_store(),
        router=IntentRouter(llm, settings.router_model),
        llm=llm,
        search_node=ProductSearchNode(llm, get_cloudsql_repo(), top_k=settings.search_top_k),
        price_node=PricePredictionNode(
            BigQueryPricePredictor(settings.price_model_path, project=settings.gcp_project_id)
        ),
        rate_limiter=get_rate_limiter(),
    )


def get_caller_id(request: Request) -> str:
    """Network identity used for rate limiting: first X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
