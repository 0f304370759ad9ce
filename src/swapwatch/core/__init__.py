"""Data model, configuration and the per-signature pipeline."""

from swapwatch.core.models import (
    SOL_MINT,
    BalanceDelta,
    TokenAmount,
    TokenBalanceSnapshot,
    TradeDirection,
    TradeRecord,
)

__all__ = [
    "SOL_MINT",
    "BalanceDelta",
    "TokenAmount",
    "TokenBalanceSnapshot",
    "TradeDirection",
    "TradeRecord",
]
