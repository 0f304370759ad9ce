"""
Per-signature trade pipeline.

    fetch -> deltas -> classify -> metadata x2 + prices -> format -> deliver

Every stage failure abandons only this transaction; the subscription that
dispatched it is unaffected.
"""

import asyncio
from dataclasses import asdict, dataclass
from typing import Optional, Protocol

from swapwatch.core.models import TradeRecord
from swapwatch.data_providers.jupiter_price import PriceLookupError, TokenPrices
from swapwatch.data_providers.token_metadata import TokenMetadata
from swapwatch.notifications.message_formatter import FormattedMessage, format_trade
from swapwatch.parsing.trade_classifier import TradeClassifier
from swapwatch.utils.logger import get_logger, log_trade_event, set_trace_id

logger = get_logger(__name__)


class Fetcher(Protocol):
    async def fetch(self, signature: str) -> Optional[dict]: ...


class MetadataProvider(Protocol):
    async def lookup(self, mint: str) -> Optional[TokenMetadata]: ...


class PriceProvider(Protocol):
    async def get_prices(self, input_mint: str, output_mint: str) -> TokenPrices: ...


class Notifier(Protocol):
    async def deliver(self, message: FormattedMessage) -> int: ...


@dataclass
class PipelineStats:
    received: int = 0
    not_found: int = 0
    not_trade: int = 0
    trades: int = 0
    metadata_failures: int = 0
    price_failures: int = 0
    delivered: int = 0
    errors: int = 0


class TradePipeline:
    """Turns signatures of one tracked wallet into Telegram messages."""

    def __init__(
        self,
        classifier: TradeClassifier,
        fetcher: Fetcher,
        metadata: MetadataProvider,
        prices: PriceProvider,
        notifier: Notifier,
        trader_name: str,
    ):
        self.classifier = classifier
        self.fetcher = fetcher
        self.metadata = metadata
        self.prices = prices
        self.notifier = notifier
        self.trader_name = trader_name
        self.stats = PipelineStats()

    async def process(self, signature: str) -> Optional[TradeRecord]:
        """Run one signature through the pipeline. Returns the trade if one was announced."""
        set_trace_id(signature[:12])
        self.stats.received += 1
        try:
            return await self._process(signature)
        except Exception as e:
            self.stats.errors += 1
            logger.exception(f"[PIPELINE] {signature[:16]}... failed: {e}")
            return None

    async def _process(self, signature: str) -> Optional[TradeRecord]:
        tx = await self.fetcher.fetch(signature)
        if not tx:
            self.stats.not_found += 1
            return None

        trade = self.classifier.parse(tx)
        if trade is None:
            self.stats.not_trade += 1
            logger.debug(f"[PIPELINE] {signature[:16]}... is not a trade")
            return None

        self.stats.trades += 1
        logger.info(
            f"[PIPELINE] {trade.direction.value} on {trade.venue}: "
            f"{trade.input.mint[:8]}... -> {trade.output.mint[:8]}..."
        )
        log_trade_event("TRADE_DETECTED", signature, trade.to_dict())

        try:
            input_meta, output_meta, prices = await asyncio.gather(
                self.metadata.lookup(trade.input.mint),
                self.metadata.lookup(trade.output.mint),
                self.prices.get_prices(trade.input.mint, trade.output.mint),
            )
        except PriceLookupError as e:
            self.stats.price_failures += 1
            logger.error(f"[PIPELINE] {signature[:16]}... price lookup failed: {e}")
            return None

        if input_meta is None or output_meta is None:
            self.stats.metadata_failures += 1
            logger.error(f"[PIPELINE] {signature[:16]}... token metadata unavailable, not announced")
            return None

        message = format_trade(trade, signature, self.trader_name, input_meta, output_meta, prices)
        delivered = await self.notifier.deliver(message)
        self.stats.delivered += delivered
        log_trade_event("TRADE_ANNOUNCED", signature, {"recipients": delivered, **trade.to_dict()})
        return trade

    def get_stats(self) -> dict:
        return {**asdict(self.stats), "classifier": self.classifier.get_stats()}
