from __future__ import annotations

import logging
from typing import Any, List, Sequence

import anyio

from catalog_chat.models import ProductMatch
from catalog_chat.services.cloudsql import CloudSqlRepository
from catalog_chat.services.llm_service import LLMService

from .base import ToolNode

logger = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "I couldn't find any products matching your query."


def _fmt_price(price: Any) -> str:
    if price is None:
        return "N/A"
    if isinstance(price, (int, float)):
        return f"${price:.2f}"
    return f"${price}"


def _fmt(value: Any) -> str:
    return "N/A" if value is None or value == "" else str(value)


def format_search_results(matches: Sequence[ProductMatch]) -> str:
    """Render matches as markdown blocks; never returns an empty string."""
    if not matches:
        return NO_MATCH_MESSAGE

    blocks: List[str] = [
        f"### {_fmt(m.name)}\n"
        f"**Category:** {_fmt(m.category)}\n"
        f"**Brand:** {_fmt(m.brand)}\n"
        f"**Price:** {_fmt_price(m.price)}\n"
        f"**Description:** {_fmt(m.description)}\n"
        f"*(Similarity Score: {m.score:.4f})*"
        for m in matches
    ]
    return "Here are the top results I found:\n\n" + "\n\n---\n\n".join(blocks)


class ProductSearchNode(ToolNode):
    """Embeds the query text and returns the closest catalog products.

    Serves both ``semantic_search`` and ``image_search``: catalog images and
    descriptions share one embedding space, so a visual description is
    searched the same way as a product name.
    """

    tool_name = "product_search"
    tool_desc = "Find catalog products similar to a product name, description or visual description."

    def __init__(self, llm: LLMService, sql_repo: CloudSqlRepository, top_k: int = 3):
        self.llm = llm
        self.sql_repo = sql_repo
        self.top_k = top_k

    async def exec(self, query: str) -> str:  # type: ignore[override]
        vector = await self.llm.get_embedding(query)
        # abandoned on timeout so the caller is not held by a stuck query
        matches = await anyio.to_thread.run_sync(
            self.sql_repo.vector_search, vector, self.top_k, abandon_on_cancel=True
        )
        logger.info("Product search for %r returned %d matches", query[:50], len(matches))
        return format_search_results(matches)
