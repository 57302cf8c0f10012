from __future__ import annotations

import logging
import math
import re
from typing import Optional

import anyio
from google.api_core.exceptions import NotFound
from google.cloud import bigquery

from catalog_chat.errors import CapabilityUnavailable

from .base import ToolNode

logger = logging.getLogger(__name__)

PRICE_UNAVAILABLE_MESSAGE = "The price prediction model is not available. Please contact an administrator."
NO_PREDICTION_MESSAGE = "I couldn't predict a price for this item."

# project.dataset.model; interpolated into SQL, so only plain identifiers pass
_MODEL_PATH_RE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_]+\.[A-Za-z0-9_]+$")


class BigQueryPricePredictor:
    """Runs ``ML.PREDICT`` against a BigQuery ML regression model."""

    def __init__(self, model_path: str, project: str | None = None, client: bigquery.Client | None = None):
        self.model_path = model_path.strip()
        self._client = client
        if self._client is None and self.is_configured:
            self._client = bigquery.Client(project=project or None)

    @property
    def is_configured(self) -> bool:
        return bool(_MODEL_PATH_RE.match(self.model_path))

    def predict(self, description: str) -> Optional[float]:
        """Predicted price for *description*, or None if the model returned nothing.

        Raises CapabilityUnavailable when the model is missing or not configured.
        """
        if not self.is_configured:
            raise CapabilityUnavailable("Price prediction is not configured.")

        sql = f"""
            SELECT predicted_price
            FROM ML.PREDICT(MODEL `{self.model_path}`, (SELECT @description AS description))
        """
        job_config = bigquery.QueryJobConfig(
            query_parameters=[bigquery.ScalarQueryParameter("description", "STRING", description)]
        )
        logger.info("Executing BigQuery ML.PREDICT against %s", self.model_path)
        try:
            rows = list(self._client.query(sql, job_config=job_config).result(max_results=1))
        except NotFound as exc:
            raise CapabilityUnavailable(f"Price model {self.model_path} not found.") from exc

        if not rows or rows[0].get("predicted_price") is None:
            return None
        return float(rows[0]["predicted_price"])


class PricePredictionNode(ToolNode):
    tool_name = "predict_price"
    tool_desc = "Estimate the price of a new or modified product from its description."

    def __init__(self, predictor: BigQueryPricePredictor):
        self.predictor = predictor

    async def exec(self, query: str) -> str:  # type: ignore[override]
        try:
            price = await anyio.to_thread.run_sync(self.predictor.predict, query, abandon_on_cancel=True)
        except CapabilityUnavailable as exc:
            logger.warning("Price prediction unavailable: %s", exc.message)
            return PRICE_UNAVAILABLE_MESSAGE

        if price is None:
            return NO_PREDICTION_MESSAGE
        # round half up, e.g. 12.5 -> 13
        return f"Based on the provided specifications, the predicted price is around ${math.floor(price + 0.5)}."
