"""Normalization filters and derived metrics for action reports."""

from .filters import normalize
from .metrics import add_page_processed_metrics, add_pages_per_search, quotient

__all__ = ["add_page_processed_metrics", "add_pages_per_search", "normalize", "quotient"]
