"""
Pytest fixtures for swapwatch tests
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from swapwatch.parsing.venues import JUPITER_PROGRAM

TRADER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
OTHER_WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


def _token_balance(index, owner, mint, amount, decimals):
    return {
        "accountIndex": index,
        "mint": mint,
        "owner": owner,
        "programId": TOKEN_PROGRAM,
        "uiTokenAmount": {
            "amount": str(amount),
            "decimals": decimals,
            "uiAmount": amount / 10 ** decimals,
            "uiAmountString": str(amount / 10 ** decimals),
        },
    }


@pytest.fixture
def trader_wallet():
    return TRADER


@pytest.fixture
def other_wallet():
    return OTHER_WALLET


@pytest.fixture
def make_tx():
    """Build a jsonParsed getTransaction result.

    pre/post are sequences of (owner, mint, raw_amount, decimals).
    """
    def _make(
        signer=TRADER,
        programs=(JUPITER_PROGRAM,),
        pre=(),
        post=(),
        pre_lamports=2_000_000_000,
        post_lamports=2_000_000_000,
        with_meta=True,
        string_keys=False,
    ):
        if string_keys:
            account_keys = [signer, OTHER_WALLET if signer != OTHER_WALLET else TRADER]
        else:
            account_keys = [
                {"pubkey": signer, "signer": True, "writable": True, "source": "transaction"},
                {"pubkey": OTHER_WALLET if signer != OTHER_WALLET else TRADER,
                 "signer": False, "writable": True, "source": "transaction"},
            ]
        tx = {
            "slot": 250_000_000,
            "blockTime": 1_700_000_000,
            "transaction": {
                "signatures": ["SIG1"],
                "message": {
                    "accountKeys": account_keys,
                    "instructions": [
                        {"programId": program, "accounts": [], "data": ""} for program in programs
                    ],
                },
            },
        }
        if with_meta:
            tx["meta"] = {
                "err": None,
                "fee": 5000,
                "preBalances": [pre_lamports, 1_000_000],
                "postBalances": [post_lamports, 1_000_000],
                "preTokenBalances": [_token_balance(i + 2, *b) for i, b in enumerate(pre)],
                "postTokenBalances": [_token_balance(i + 2, *b) for i, b in enumerate(post)],
            }
        return tx
    return _make


def mock_response(status=200, json_data=None, text=""):
    """aiohttp response usable as `async with session.post(...) as resp`."""
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=resp)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


@pytest.fixture
def http_response():
    return mock_response


@pytest.fixture
def mock_session():
    """Mock aiohttp ClientSession"""
    session = MagicMock()
    session.post = MagicMock(return_value=mock_response(json_data={"ok": True}))
    session.get = MagicMock(return_value=mock_response(json_data={}))
    return session
