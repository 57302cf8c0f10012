from .base import ToolNode
from .bigquery_node import BigQueryPricePredictor, PricePredictionNode
from .router import IntentRouter, parse_classification
from .search_node import ProductSearchNode, format_search_results
