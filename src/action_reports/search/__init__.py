"""Label path search over hierarchical reports."""

from .engine import PathSearch
from .paths import decompose

__all__ = ["PathSearch", "decompose"]
