"""Value types shared by the parser, the pipeline and the notifier."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

SOL_MINT = "So11111111111111111111111111111111111111112"
SOL_DECIMALS = 9


@dataclass(frozen=True)
class TokenBalanceSnapshot:
    """Token balance of one owner for one mint, before or after a transaction."""
    owner: str
    mint: str
    amount: int             # raw units
    decimals: int


@dataclass(frozen=True)
class BalanceDelta:
    """Signed balance change of the tracked owner for one mint."""
    mint: str
    amount: int                     # post - pre, raw units
    decimals: int
    program_id: Optional[str]       # first allowlisted venue program in the tx
    pre_amount: int


class TradeDirection(Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class TokenAmount:
    mint: str
    amount: int             # positive raw magnitude


@dataclass(frozen=True)
class TradeRecord:
    direction: TradeDirection
    trader: str
    input: TokenAmount
    output: TokenAmount
    venue: str

    @property
    def token_mint(self) -> str:
        """The non-SOL side of the trade (the output when both are tokens)."""
        if self.output.mint == SOL_MINT:
            return self.input.mint
        return self.output.mint

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "trader": self.trader,
            "input_mint": self.input.mint,
            "input_amount": self.input.amount,
            "output_mint": self.output.mint,
            "output_amount": self.output.amount,
            "venue": self.venue,
        }
