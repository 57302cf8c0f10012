import logging
from typing import Any, List, Optional, Sequence

import sqlalchemy
from google.cloud.sql.connector import Connector, IPTypes
from sqlalchemy.engine import Engine

from catalog_chat.config import Settings
from catalog_chat.models import ProductMatch, ProductRecord

logger = logging.getLogger(__name__)


class CloudSqlRepository:
    """Repository for conversation blobs and the product vector index in Cloud SQL.

    A single pooled engine is created per process; every call checks a
    connection out of the pool and returns it when the block exits.
    """

    def __init__(
        self,
        settings: Settings,
        connector: Optional[Connector] = None,
        engine: Optional[Engine] = None,
    ):
        self.settings = settings
        self.connector = connector
        if engine is None:
            self.connector = connector or Connector()
            engine = sqlalchemy.create_engine(
                "postgresql+pg8000://",
                creator=self._getconn,
                pool_size=settings.cloud_sql_pool_size,
                max_overflow=settings.cloud_sql_max_overflow,
                pool_pre_ping=True,
            )
        self.engine = engine
        logger.info("Cloud SQL Repository initialized (instance=%s)", settings.cloud_sql_instance or "<injected>")

    def _getconn(self) -> Any:  # pg8000 connection
        return self.connector.connect(
            self.settings.cloud_sql_instance,
            "pg8000",
            user=self.settings.cloud_sql_user,
            password=self.settings.cloud_sql_password,
            db=self.settings.cloud_sql_db,
            ip_type=IPTypes.PUBLIC,
        )

    def close(self) -> None:
        self.engine.dispose()
        if self.connector is not None:
            self.connector.close()
        logger.info("Cloud SQL pool closed.")

    @staticmethod
    def _to_pgvector(vec: Sequence[float]) -> str:
        # keep it dense → smaller payload, less parsing time
        return "[" + ",".join(f"{x:.6f}" for x in vec) + "]"

    # --------------------------------------------------------------------- #
    # Schema
    # --------------------------------------------------------------------- #
    def ensure_schema(self) -> None:
        dim = int(self.settings.embedding_dimension)
        statements = [
            "CREATE EXTENSION IF NOT EXISTS vector",
            """
            CREATE TABLE IF NOT EXISTS chats (
                id   TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS products (
                id          TEXT PRIMARY KEY,
                name        TEXT,
                category    TEXT,
                brand       TEXT,
                price       DOUBLE PRECISION,
                description TEXT,
                embedding   vector({dim}) NOT NULL
            )
            """,
        ]
        with self.engine.begin() as conn:
            for stmt in statements:
                conn.execute(sqlalchemy.text(stmt))
        logger.info("Cloud SQL schema ensured (embedding dimension %d)", dim)

    # --------------------------------------------------------------------- #
    # Chat blobs
    # --------------------------------------------------------------------- #
    def fetch_chat(self, chat_id: str) -> Optional[str]:
        """Return the serialized conversation or None when the row is missing."""
        with self.engine.connect() as conn:
            row = conn.execute(
                sqlalchemy.text("SELECT data FROM chats WHERE id = :id"),
                {"id": chat_id},
            ).fetchone()
        return row[0] if row else None

    def insert_chat(self, chat_id: str, data: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                sqlalchemy.text("INSERT INTO chats (id, data) VALUES (:id, :data)"),
                {"id": chat_id, "data": data},
            )
        logger.debug("Inserted chat %s", chat_id)

    def update_chat(self, chat_id: str, data: str) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                sqlalchemy.text("UPDATE chats SET data = :data WHERE id = :id"),
                {"id": chat_id, "data": data},
            )
            if result.rowcount == 0:
                raise KeyError(f"Chat {chat_id} not found")
        logger.debug("Updated chat %s", chat_id)

    # --------------------------------------------------------------------- #
    # Product vector index
    # --------------------------------------------------------------------- #
    def vector_search(self, query_vector: Sequence[float], limit: int) -> List[ProductMatch]:
        """Top-*limit* products by cosine similarity (pgvector ``<=>`` is cosine distance)."""
        sql = sqlalchemy.text(
            """
            SELECT
                name,
                category,
                brand,
                price,
                description,
                1 - (embedding <=> CAST(:vec AS vector)) AS score
            FROM products
            ORDER BY embedding <=> CAST(:vec AS vector) ASC
            LIMIT :limit
            """
        )
        with self.engine.connect() as conn:
            rows = conn.execute(sql, {"vec": self._to_pgvector(query_vector), "limit": limit}).mappings().all()

        matches = [
            ProductMatch(
                score=float(row["score"]),
                name=row["name"],
                category=row["category"],
                brand=row["brand"],
                price=row["price"],
                description=row["description"],
            )
            for row in rows
        ]
        logger.info("Vector search found %d products for limit %d", len(matches), limit)
        return matches

    def upsert_products(self, records: Sequence[ProductRecord]) -> int:
        """Insert or replace product vectors. Used by catalog ingestion."""
        if not records:
            return 0
        sql = sqlalchemy.text(
            """
            INSERT INTO products (id, name, category, brand, price, description, embedding)
            VALUES (:id, :name, :category, :brand, :price, :description, CAST(:embedding AS vector))
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name,
                category = EXCLUDED.category,
                brand = EXCLUDED.brand,
                price = EXCLUDED.price,
                description = EXCLUDED.description,
                embedding = EXCLUDED.embedding
            """
        )
        params = [
            {
                **record.model_dump(exclude={"embedding"}),
                "embedding": self._to_pgvector(record.embedding),
            }
            for record in records
        ]
        with self.engine.begin() as conn:
            conn.execute(sql, params)
        logger.info("Upserted %d product vectors", len(params))
        return len(params)
