"""
Token metadata: symbol, supply and decimals of a mint.

Primary source is the chain itself: the SPL mint account (supply, decimals)
and the Metaplex metadata PDA (symbol), fetched in one getMultipleAccounts
call. Tokens without a Metaplex account (Token-2022 metadata extension,
compressed assets) fall back to the DAS `getAsset` method of the RPC node.
"""

import asyncio
import struct
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp
from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey

from swapwatch.core.models import SOL_DECIMALS, SOL_MINT
from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)

METADATA_PROGRAM = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

# SPL Token mint layout
MINT_SUPPLY_OFFSET = 36
MINT_DECIMALS_OFFSET = 44

# Metaplex metadata layout: key (1) + update_authority (32) + mint (32)
METADATA_NAME_OFFSET = 1 + 32 + 32

CACHE_TTL = 300.0
CACHE_CLEANUP_THRESHOLD = 50


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    supply: int             # raw units
    decimals: int


SOL_METADATA = TokenMetadata(symbol="SOL", supply=0, decimals=SOL_DECIMALS)


class MetadataUnavailableError(Exception):
    """Neither the chain nor the DAS API could describe the mint."""


def metadata_pda(mint: Pubkey) -> Pubkey:
    pda, _ = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM), bytes(mint)],
        METADATA_PROGRAM,
    )
    return pda


def decode_mint(data: bytes) -> tuple[int, int]:
    """(supply, decimals) from SPL mint account data."""
    if len(data) <= MINT_DECIMALS_OFFSET:
        raise ValueError(f"mint account too short ({len(data)} bytes)")
    supply = struct.unpack_from("<Q", data, MINT_SUPPLY_OFFSET)[0]
    return supply, data[MINT_DECIMALS_OFFSET]


def _read_string(data: bytes, offset: int) -> tuple[str, int]:
    length = struct.unpack_from("<I", data, offset)[0]
    start = offset + 4
    raw = data[start:start + length]
    if len(raw) != length:
        raise ValueError("metadata string runs past end of account")
    return raw.decode("utf-8", errors="ignore").replace("\x00", "").strip(), start + length


def decode_metadata_symbol(data: bytes) -> str:
    """Symbol field of a Metaplex metadata account (null padding stripped)."""
    _, offset = _read_string(data, METADATA_NAME_OFFSET)
    symbol, _ = _read_string(data, offset)
    return symbol


class TokenMetadataProvider:
    """Cached metadata lookups. SOL resolves locally without a network call."""

    def __init__(
        self,
        client: AsyncClient,
        session: aiohttp.ClientSession,
        rpc_endpoint: str,
        timeout: float = 5.0,
        cache_ttl: float = CACHE_TTL,
    ):
        self._client = client
        self._session = session
        self.rpc_endpoint = rpc_endpoint
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._cache: dict[str, tuple[TokenMetadata, float]] = {}

    async def lookup(self, mint: str) -> Optional[TokenMetadata]:
        if mint == SOL_MINT:
            return SOL_METADATA

        cached = self._cache.get(mint)
        if cached and time.monotonic() - cached[1] < self.cache_ttl:
            return cached[0]

        try:
            metadata = await self._lookup_onchain(mint)
        except MetadataUnavailableError as e:
            logger.debug(f"[METADATA] {mint[:8]}... on-chain lookup failed ({e}), trying DAS")
            try:
                metadata = await self._lookup_das(mint)
            except MetadataUnavailableError as das_error:
                logger.warning(f"[METADATA] {mint[:8]}... unavailable: {das_error}")
                return None

        now = time.monotonic()
        self._prune(now)
        self._cache[mint] = (metadata, now)
        return metadata

    def _prune(self, now: float) -> None:
        if len(self._cache) < CACHE_CLEANUP_THRESHOLD:
            return
        cutoff = now - self.cache_ttl
        for mint in [m for m, (_, ts) in self._cache.items() if ts < cutoff]:
            del self._cache[mint]

    def __len__(self) -> int:
        return len(self._cache)

    async def _lookup_onchain(self, mint: str) -> TokenMetadata:
        try:
            mint_pubkey = Pubkey.from_string(mint)
            response = await self._client.get_multiple_accounts(
                [mint_pubkey, metadata_pda(mint_pubkey)], encoding="base64"
            )
        except Exception as e:
            # invalid mint string, RPC error or httpx transport error
            raise MetadataUnavailableError(f"rpc error: {e}") from e

        mint_account, metadata_account = (list(response.value) + [None, None])[:2]
        if mint_account is None:
            raise MetadataUnavailableError("mint account not found")
        if metadata_account is None:
            raise MetadataUnavailableError("no metadata account")

        try:
            supply, decimals = decode_mint(bytes(mint_account.data))
            symbol = decode_metadata_symbol(bytes(metadata_account.data))
        except (ValueError, struct.error) as e:
            raise MetadataUnavailableError(f"undecodable account data: {e}") from e

        return TokenMetadata(symbol=symbol or mint[:4], supply=supply, decimals=decimals)

    async def _lookup_das(self, mint: str) -> TokenMetadata:
        payload = {
            "jsonrpc": "2.0",
            "id": "swapwatch",
            "method": "getAsset",
            "params": {"id": mint, "displayOptions": {"showFungible": True}},
        }
        try:
            async with self._session.post(
                self.rpc_endpoint,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    raise MetadataUnavailableError(f"DAS HTTP {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise MetadataUnavailableError(f"DAS request failed: {e}") from e

        if not isinstance(data, dict):
            raise MetadataUnavailableError(f"DAS returned {type(data).__name__}, expected an object")
        result = data.get("result")
        if not isinstance(result, dict):
            result = {}
        token_info = result.get("token_info") or {}
        if "decimals" not in token_info or "supply" not in token_info:
            raise MetadataUnavailableError(data.get("error") or "DAS returned no token_info")

        symbol = token_info.get("symbol") or (
            (result.get("content") or {}).get("metadata") or {}
        ).get("symbol") or mint[:4]
        return TokenMetadata(
            symbol=str(symbol),
            supply=int(token_info["supply"]),
            decimals=int(token_info["decimals"]),
        )
