"""Balance-diff engine and trade classifier."""

from .balance_diff import compute_deltas
from .trade_classifier import TradeClassifier
from .venues import VENUE_PROGRAMS, venue_name

__all__ = ["compute_deltas", "TradeClassifier", "VENUE_PROGRAMS", "venue_name"]
