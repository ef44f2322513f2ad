"""
Paper execution venue: positions, stops and cash in SQLite.
Restart-safe. No live capital.
"""

from execution.models import ClosedTrade, Fill, Order
from execution.paper_executor import PaperExecutor

__all__ = ["ClosedTrade", "Fill", "Order", "PaperExecutor"]
