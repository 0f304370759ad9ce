"""
getTransaction over JSON-RPC.

A signature seen on a `confirmed` logs stream is not always queryable yet on
the RPC node, so an empty result is retried a few times before giving up.
"""

import asyncio
from typing import Any, Optional

import aiohttp

from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)

_sleep = asyncio.sleep


class TransactionFetcher:
    """Fetches jsonParsed transactions. Never raises: failures yield None."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        rpc_endpoint: str,
        commitment: str = "confirmed",
        timeout: float = 5.0,
        attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        self._session = session
        self.rpc_endpoint = rpc_endpoint
        self.commitment = commitment
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay

    def request_payload(self, signature: str) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTransaction",
            "params": [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self.commitment,
                },
            ],
        }

    async def fetch(self, signature: str) -> Optional[dict[str, Any]]:
        for attempt in range(self.attempts):
            if attempt > 0:
                await _sleep(self.retry_delay)
            tx = await self._get_transaction(signature)
            if tx:
                if attempt > 0:
                    logger.debug(f"[FETCH] {signature[:16]}... found on attempt {attempt + 1}")
                return tx
        logger.warning(f"[FETCH] {signature[:16]}... not available after {self.attempts} attempts")
        return None

    async def _get_transaction(self, signature: str) -> Optional[dict[str, Any]]:
        try:
            async with self._session.post(
                self.rpc_endpoint,
                json=self.request_payload(signature),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Content-Type": "application/json"},
            ) as resp:
                if resp.status == 429:
                    logger.warning("[FETCH] RPC rate limited (429)")
                    return None
                if resp.status != 200:
                    logger.warning(f"[FETCH] RPC HTTP {resp.status}")
                    return None
                data = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning(f"[FETCH] getTransaction timeout ({self.timeout}s)")
            return None
        except (aiohttp.ClientError, ValueError) as e:
            logger.warning(f"[FETCH] getTransaction error: {e}")
            return None

        error = data.get("error")
        if error:
            logger.warning(f"[FETCH] RPC error: {error}")
            return None
        return data.get("result")
