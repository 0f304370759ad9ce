"""
USD prices from the Jupiter Price API v3.

Both sides of a trade are priced with a single request. A mint Jupiter does
not know resolves to 0.0; a failed request raises PriceLookupError.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)

PRICE_API_URL = "https://api.jup.ag/price/v3"


@dataclass(frozen=True)
class TokenPrices:
    input: float
    output: float


class PriceLookupError(Exception):
    """The price API could not be reached or answered with an error."""


def _usd_price(data: dict[str, Any], mint: str) -> float:
    entry = data.get(mint) or {}
    try:
        return float(entry.get("usdPrice") or 0.0)
    except (TypeError, ValueError):
        return 0.0


class JupiterPriceProvider:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: Optional[str] = None,
        base_url: str = PRICE_API_URL,
        timeout: float = 5.0,
    ):
        self._session = session
        self.api_key = api_key if api_key is not None else os.getenv("JUPITER_API_KEY")
        self.base_url = base_url
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def get_prices(self, input_mint: str, output_mint: str) -> TokenPrices:
        ids = ",".join(dict.fromkeys([input_mint, output_mint]))
        try:
            async with self._session.get(
                self.base_url,
                params={"ids": ids},
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    raise PriceLookupError(f"Jupiter price API HTTP {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise PriceLookupError(f"Jupiter price API request failed: {e}") from e

        if not isinstance(data, dict):
            raise PriceLookupError("Jupiter price API returned unexpected payload")

        prices = TokenPrices(
            input=_usd_price(data, input_mint),
            output=_usd_price(data, output_mint),
        )
        logger.debug(f"[JUP] {input_mint[:8]}=${prices.input} {output_mint[:8]}=${prices.output}")
        return prices
