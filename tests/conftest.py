"""Pytest fixtures and in-memory fakes for the external capabilities."""

import json
import threading
from typing import Dict, List, Optional

import pytest

from catalog_chat.config import ChatModel, Settings
from catalog_chat.models import ProductMatch, RateLimitTicket
from catalog_chat.services.chat_store import ConversationStore
from catalog_chat.services.orchestrator import ChatOrchestrator
from catalog_chat.tools.bigquery_node import PricePredictionNode
from catalog_chat.tools.router import IntentRouter
from catalog_chat.tools.search_node import ProductSearchNode


def router_reply(intent: str, query: str = "") -> str:
    return json.dumps({"intent": intent, "parameters": {"query": query}})


async def collect(stream) -> str:
    return "".join([chunk async for chunk in stream])


class FakeChatRepo:
    """Stands in for the chat table of CloudSqlRepository."""

    def __init__(self):
        self.rows: Dict[str, str] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.read_barrier: Optional[threading.Barrier] = None
        self.writes = 0

    def fetch_chat(self, chat_id: str) -> Optional[str]:
        if self.fail_reads:
            raise ConnectionError("db unreachable")
        row = self.rows.get(chat_id)
        if self.read_barrier is not None:
            self.read_barrier.wait()
        return row

    def insert_chat(self, chat_id: str, data: str) -> None:
        if self.fail_writes:
            raise ConnectionError("db unreachable")
        if chat_id in self.rows:
            raise ValueError(f"duplicate key {chat_id}")
        self.rows[chat_id] = data
        self.writes += 1

    def update_chat(self, chat_id: str, data: str) -> None:
        if self.fail_writes:
            raise ConnectionError("db unreachable")
        if chat_id not in self.rows:
            raise KeyError(chat_id)
        self.rows[chat_id] = data
        self.writes += 1


class FakeVectorRepo:
    def __init__(self, matches: List[ProductMatch]):
        self.matches = matches
        self.calls = []

    def vector_search(self, query_vector, limit):
        self.calls.append((list(query_vector), limit))
        return self.matches[:limit]


class FakeLLM:
    """Scripted replacement for LLMService."""

    def __init__(self, router_replies=(), stream_chunks=("Hello", " world"), embedding=None, title="Printer Lookalikes"):
        self.router_replies = list(router_replies)
        self.stream_chunks = list(stream_chunks)
        self.embedding = embedding or [0.25, 0.5, 0.75]
        self.title = title
        self.generate_calls = []
        self.stream_calls = []
        self.embedded = []

    async def generate_text(self, prompt, model, *, json_output=False, max_output_tokens=None):
        self.generate_calls.append({"prompt": prompt, "model": model, "json_output": json_output})
        reply = self.router_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream_chat(self, model, system_instruction, messages):
        self.stream_calls.append({"model": model, "system": system_instruction, "messages": list(messages)})
        for chunk in self.stream_chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def get_embedding(self, text):
        self.embedded.append(text)
        return self.embedding

    async def generate_title(self, user_question):
        if isinstance(self.title, Exception):
            raise self.title
        return self.title


class FakePredictor:
    def __init__(self, price: Optional[float] = 123.4, error: Optional[Exception] = None):
        self.price = price
        self.error = error
        self.calls = []

    def predict(self, description):
        self.calls.append(description)
        if self.error is not None:
            raise self.error
        return self.price


class FakeRateLimiter:
    def __init__(self, limit: int = 2):
        self.limit = limit
        self.counts: Dict[str, int] = {}
        self.calls = 0

    async def admit(self, caller_id):
        self.calls += 1
        count = self.counts.get(caller_id, 0)
        if count >= self.limit:
            return RateLimitTicket(caller_id=caller_id, admitted=False, count=count, limit=self.limit)
        self.counts[caller_id] = count + 1
        return RateLimitTicket(caller_id=caller_id, admitted=True, count=count + 1, limit=self.limit)


PRINTER_MATCHES = [
    ProductMatch(score=0.912345, name="Compact Printer Air", category="Printers", brand="Inkly",
                 price=129.99, description="Wireless compact printer."),
    ProductMatch(score=0.87, name="Compact Printer Pro", category="Printers", brand="Inkly",
                 price=179.0, description="Duplex compact printer."),
    ProductMatch(score=0.80011, name="Travel Printer Mini", category="Printers", brand="Papero",
                 price="89", description="Pocket sized photo printer."),
]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        chat_models=[
            ChatModel(slug="fast", model="fast-model", is_default=True),
            ChatModel(slug="smart", model="smart-model"),
        ],
        router_model="router-model",
        capability_timeout_seconds=5,
        search_top_k=3,
    )


@pytest.fixture
def chat_repo() -> FakeChatRepo:
    return FakeChatRepo()


@pytest.fixture
def store(chat_repo) -> ConversationStore:
    return ConversationStore(chat_repo)


@pytest.fixture
def make_orchestrator(settings, store):
    def _make(llm, matches=None, predictor=None, limiter=None):
        return ChatOrchestrator(
            settings=settings,
            store=store,
            router=IntentRouter(llm, settings.router_model),
            llm=llm,
            search_node=ProductSearchNode(llm, FakeVectorRepo(PRINTER_MATCHES if matches is None else matches), top_k=3),
            price_node=PricePredictionNode(predictor or FakePredictor()),
            rate_limiter=limiter,
        )

    return _make
