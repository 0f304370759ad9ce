"""
Trade classifier.

Decides whether a transaction of the tracked wallet is a swap and which side
was given up (input) and which was received (output). Roles are assigned by
the sign of each delta, never by the order deltas were discovered in:

- a token given up for another token: input = most negative token delta,
  output = most positive token delta, direction SELL
- SOL given up for a token: BUY, input = SOL
- SOL received for a token: SELL, output = SOL

When several deltas share a sign the largest raw magnitude wins, ties broken
by mint so the result is deterministic.

SOL amounts are net of fees and tips. A dust sell whose proceeds are smaller
than what it paid in fees leaves the wallet with a negative SOL delta next to
a spent token; that is not reported as a trade and counts as
`insufficient_deltas`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from swapwatch.core.models import (
    SOL_MINT,
    BalanceDelta,
    TokenAmount,
    TradeDirection,
    TradeRecord,
)
from swapwatch.parsing.balance_diff import (
    compute_deltas,
    find_signer,
    instruction_program_ids,
)
from swapwatch.parsing.venues import VENUE_PROGRAMS, venue_name
from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ClassifierStats:
    """Counters for monitoring classifier decisions."""
    total: int = 0
    trades: int = 0
    buys: int = 0
    sells: int = 0
    no_venue: int = 0
    signer_mismatch: int = 0
    insufficient_deltas: int = 0
    unparsable: int = 0         # no meta, no signer or foreign signer


def _merge_by_mint(deltas: list[BalanceDelta]) -> dict[str, int]:
    """Net amount per mint. Native lamports and wSOL share the SOL mint."""
    net: dict[str, int] = {}
    for delta in deltas:
        net[delta.mint] = net.get(delta.mint, 0) + delta.amount
    return {mint: amount for mint, amount in net.items() if amount != 0}


def _largest(candidates: dict[str, int]) -> tuple[str, int]:
    mint = min(candidates, key=lambda m: (-abs(candidates[m]), m))
    return mint, candidates[mint]


class TradeClassifier:
    """Classifies transactions signed by one tracked wallet."""

    def __init__(self, tracked_address: str, venues: dict[str, str] | None = None):
        self.tracked_address = tracked_address
        self.venues = venues if venues is not None else VENUE_PROGRAMS
        self._allowlist = set(self.venues.values())
        self.stats = ClassifierStats()

    def compute_deltas(self, transaction: dict[str, Any]) -> Optional[list[BalanceDelta]]:
        return compute_deltas(transaction, self.tracked_address, self.venues)

    def has_venue(self, transaction: dict[str, Any]) -> bool:
        return any(p in self._allowlist for p in instruction_program_ids(transaction))

    def classify(
        self, transaction: dict[str, Any], deltas: Optional[list[BalanceDelta]]
    ) -> Optional[TradeRecord]:
        """Build a TradeRecord from `deltas`, or None if this is not a trade."""
        self.stats.total += 1

        if not self.has_venue(transaction):
            self.stats.no_venue += 1
            return None

        signer = find_signer(transaction)
        if signer is None or signer[1] != self.tracked_address:
            self.stats.signer_mismatch += 1
            return None

        net = _merge_by_mint(deltas or [])
        if len(net) < 2:
            self.stats.insufficient_deltas += 1
            return None

        tokens = {mint: amount for mint, amount in net.items() if mint != SOL_MINT}
        native = net.get(SOL_MINT, 0)
        spent = {mint: amount for mint, amount in tokens.items() if amount < 0}
        received = {mint: amount for mint, amount in tokens.items() if amount > 0}

        if spent and received:
            in_mint, in_amount = _largest(spent)
            out_mint, out_amount = _largest(received)
            direction = TradeDirection.SELL
        elif native < 0 and received:
            in_mint, in_amount = SOL_MINT, native
            out_mint, out_amount = _largest(received)
            direction = TradeDirection.BUY
        elif native > 0 and spent:
            in_mint, in_amount = _largest(spent)
            out_mint, out_amount = SOL_MINT, native
            direction = TradeDirection.SELL
        else:
            self.stats.insufficient_deltas += 1
            return None

        program_id = next((d.program_id for d in deltas if d.program_id), None)
        record = TradeRecord(
            direction=direction,
            trader=self.tracked_address,
            input=TokenAmount(mint=in_mint, amount=abs(in_amount)),
            output=TokenAmount(mint=out_mint, amount=abs(out_amount)),
            venue=venue_name(program_id, self.venues),
        )

        self.stats.trades += 1
        if direction is TradeDirection.BUY:
            self.stats.buys += 1
        else:
            self.stats.sells += 1

        logger.debug(
            f"[PARSER] {record.direction.value} {in_mint[:8]}... -> {out_mint[:8]}... on {record.venue}"
        )
        return record

    def parse(self, transaction: dict[str, Any]) -> Optional[TradeRecord]:
        """compute_deltas + classify in one call."""
        deltas = self.compute_deltas(transaction)
        if deltas is None:
            self.stats.total += 1
            self.stats.unparsable += 1
            return None
        return self.classify(transaction, deltas)

    def get_stats(self) -> dict:
        return asdict(self.stats)
