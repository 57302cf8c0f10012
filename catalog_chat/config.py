from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChatModel(BaseModel):
    """A model the caller may pick by slug for the general question path."""

    slug: str
    model: str
    is_default: bool = False


_DEFAULT_CHAT_MODELS = [
    ChatModel(slug="gemini-flash", model="gemini-2.5-flash", is_default=True),
    ChatModel(slug="gemini-pro", model="gemini-2.5-pro"),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Google Cloud / Gen AI ---
    gcp_project_id: str = ""
    gcp_location: str = "global"
    chat_models: List[ChatModel] = _DEFAULT_CHAT_MODELS
    router_model: str = "gemini-2.5-flash"
    title_model: str = "gemini-2.5-flash"
    embedding_model: str = "text-embedding-005"
    embedding_dimension: int = 768

    # --- Product search ---
    search_top_k: int = 3

    # --- Cloud SQL Settings ---
    cloud_sql_instance: str = ""  # e.g., project:region:instance
    cloud_sql_user: str = ""
    cloud_sql_password: str = ""
    cloud_sql_db: str = ""
    cloud_sql_pool_size: int = 5
    cloud_sql_max_overflow: int = 2

    # --- Price prediction (BigQuery ML) ---
    price_model_path: str = ""  # e.g., project.dataset.product_price_predictor

    # --- Rate limiting (Firestore) ---
    rate_limit_enabled: bool = True
    daily_message_limit: int = 100
    rate_limit_collection: str = "rate_limits"

    # --- Chat Settings ---
    max_chat_title_length: int = 50
    capability_timeout_seconds: float = 60.0

    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    @property
    def default_chat_model(self) -> ChatModel:
        for entry in self.chat_models:
            if entry.is_default:
                return entry
        return self.chat_models[0]

    def resolve_chat_model(self, slug: Optional[str]) -> str:
        """Map a caller supplied slug to a model id, falling back to the default."""
        if slug:
            for entry in self.chat_models:
                if entry.slug == slug:
                    return entry.model
        return self.default_chat_model.model


@lru_cache()
def get_settings() -> Settings:
    return Settings()
