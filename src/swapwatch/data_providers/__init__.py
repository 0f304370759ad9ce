"""Network lookups used by the trade pipeline."""

from .jupiter_price import JupiterPriceProvider, PriceLookupError, TokenPrices
from .token_metadata import MetadataUnavailableError, TokenMetadata, TokenMetadataProvider
from .transaction_fetcher import TransactionFetcher

__all__ = [
    "JupiterPriceProvider",
    "MetadataUnavailableError",
    "PriceLookupError",
    "TokenMetadata",
    "TokenMetadataProvider",
    "TokenPrices",
    "TransactionFetcher",
]
