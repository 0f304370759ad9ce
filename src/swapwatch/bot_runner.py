"""
Process entry point: one subscription + pipeline per configured wallet.

    swapwatch                       # bots/*.yaml, or TRACK_WALLET* from .env
    swapwatch --bots-dir ./trackers --log-level DEBUG
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import aiohttp
import uvloop
from solana.rpc.async_api import AsyncClient

from swapwatch.core.config import ConfigError, TrackerConfig, load_trackers
from swapwatch.core.pipeline import TradePipeline
from swapwatch.data_providers import (
    JupiterPriceProvider,
    TokenMetadataProvider,
    TransactionFetcher,
)
from swapwatch.monitoring import SubscriptionManager
from swapwatch.notifications import TelegramNotifier
from swapwatch.parsing import TradeClassifier
from swapwatch.utils.logger import get_logger, setup_console_logging, setup_file_logging

logger = get_logger(__name__)


def build_tracker(
    cfg: TrackerConfig,
    session: aiohttp.ClientSession,
    rpc_client: AsyncClient,
) -> SubscriptionManager:
    """Wire the pipeline and subscription manager of one tracked wallet."""
    notifier = TelegramNotifier(session, cfg.bot_token, cfg.subscribers)
    pipeline = TradePipeline(
        classifier=TradeClassifier(cfg.tracked_wallet),
        fetcher=TransactionFetcher(session, cfg.rpc_endpoint, commitment=cfg.subscription.commitment),
        metadata=TokenMetadataProvider(rpc_client, session, cfg.rpc_endpoint),
        prices=JupiterPriceProvider(session),
        notifier=notifier,
        trader_name=cfg.trader_name,
    )
    sub = cfg.subscription
    return SubscriptionManager(
        cfg.tracked_wallet,
        cfg.wss_endpoint,
        pipeline.process,
        name=cfg.name,
        session=session,
        max_reconnect_attempts=sub.max_reconnect_attempts,
        reconnect_delay=sub.reconnect_delay,
        ping_interval=sub.ping_interval,
        ready_poll_attempts=sub.ready_poll_attempts,
        ready_poll_interval=sub.ready_poll_interval,
        commitment=sub.commitment,
        on_exhausted=notifier.send_alert,
    )


async def run_trackers(trackers: list[TrackerConfig]) -> None:
    """Run every tracker until all of them have stopped."""
    rpc_clients: dict[str, AsyncClient] = {}
    managers: list[SubscriptionManager] = []

    async with aiohttp.ClientSession() as session:
        try:
            for cfg in trackers:
                if cfg.rpc_endpoint not in rpc_clients:
                    rpc_clients[cfg.rpc_endpoint] = AsyncClient(cfg.rpc_endpoint)
                managers.append(build_tracker(cfg, session, rpc_clients[cfg.rpc_endpoint]))
                logger.info(f"Tracking {cfg.tracked_wallet} as '{cfg.trader_name}' ({cfg.name})")

            results = await asyncio.gather(*(m.run() for m in managers), return_exceptions=True)
            for manager, result in zip(managers, results):
                if isinstance(result, Exception):
                    logger.error(f"Tracker '{manager.name}' crashed: {result}")
                else:
                    logger.info(f"Tracker '{manager.name}' finished in state {manager.state.value}")
        finally:
            for manager in managers:
                await manager.stop()
            for client in rpc_clients.values():
                await client.close()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Announce Solana wallet swaps on Telegram")
    parser.add_argument("--bots-dir", default="bots", help="directory of tracker YAML files")
    parser.add_argument("--env-file", default=None, help=".env file to load (default: ./.env)")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-file", default="swapwatch.log", help="log file name under logs/")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    level = getattr(logging, args.log_level.upper(), logging.INFO)

    setup_console_logging(level)
    setup_file_logging(args.log_file, level=level)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        trackers = load_trackers(args.bots_dir, args.env_file)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info(f"Starting {len(trackers)} tracker(s)")
    try:
        uvloop.run(run_trackers(trackers))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
