"""
Balance-diff engine.

Turns a jsonParsed transaction (as returned by getTransaction) into the
signed per-mint balance changes of the tracked owner. No instruction data is
decoded: the trade is inferred purely from pre/post balance snapshots.

Works for every venue in the allowlist without venue-specific layouts.
"""

from __future__ import annotations

from typing import Any, Optional

from swapwatch.core.models import (
    SOL_DECIMALS,
    SOL_MINT,
    BalanceDelta,
    TokenBalanceSnapshot,
)
from swapwatch.parsing.venues import VENUE_PROGRAMS


# =============================================================================
# Transaction accessors
# =============================================================================

def _message(transaction: dict[str, Any]) -> dict[str, Any]:
    return (transaction.get("transaction") or {}).get("message") or {}


def find_signer(transaction: dict[str, Any]) -> Optional[tuple[int, str]]:
    """Return (account index, pubkey) of the first signer, or None.

    jsonParsed account keys are dicts with a `signer` flag. Plain string keys
    (json encoding) have no flag; the fee payer at index 0 is the signer then.
    """
    account_keys = _message(transaction).get("accountKeys") or []
    for index, key in enumerate(account_keys):
        if isinstance(key, dict):
            if key.get("signer"):
                pubkey = key.get("pubkey")
                return (index, str(pubkey)) if pubkey else None
        elif index == 0 and key:
            return 0, str(key)
    return None


def instruction_program_ids(transaction: dict[str, Any]) -> list[str]:
    """Program ids of the outer instructions, in order."""
    message = _message(transaction)
    account_keys = message.get("accountKeys") or []
    program_ids = []
    for ix in message.get("instructions") or []:
        program_id = ix.get("programId")
        if program_id is None and "programIdIndex" in ix:
            index = ix["programIdIndex"]
            if index < len(account_keys):
                key = account_keys[index]
                program_id = key.get("pubkey") if isinstance(key, dict) else key
        if program_id:
            program_ids.append(str(program_id))
    return program_ids


def first_venue_program(
    transaction: dict[str, Any], venues: dict[str, str] = VENUE_PROGRAMS
) -> Optional[str]:
    """First outer instruction program that is a known venue.

    A transaction is assumed to trade on a single venue; a tx routing through
    two venues is attributed to the first one.
    """
    allowlist = set(venues.values())
    for program_id in instruction_program_ids(transaction):
        if program_id in allowlist:
            return program_id
    return None


# =============================================================================
# Snapshots
# =============================================================================

def _raw_amount(balance: dict[str, Any]) -> tuple[int, int]:
    ui = balance.get("uiTokenAmount") or {}
    amount = ui.get("amount")
    decimals = ui.get("decimals") or 0
    return (int(amount) if amount else 0), int(decimals)


def collect_snapshots(
    balances: list[dict[str, Any]] | None, owner: str
) -> dict[str, TokenBalanceSnapshot]:
    """Token balances of `owner` keyed by mint.

    An owner can hold several token accounts of one mint; they are summed so
    there is exactly one snapshot per mint.
    """
    snapshots: dict[str, TokenBalanceSnapshot] = {}
    for balance in balances or []:
        if balance.get("owner") != owner:
            continue
        mint = balance.get("mint")
        if not mint:
            continue
        amount, decimals = _raw_amount(balance)
        existing = snapshots.get(mint)
        if existing:
            amount += existing.amount
        snapshots[mint] = TokenBalanceSnapshot(
            owner=owner, mint=mint, amount=amount, decimals=decimals
        )
    return snapshots


# =============================================================================
# Deltas
# =============================================================================

def compute_deltas(
    transaction: dict[str, Any],
    owner: str,
    venues: dict[str, str] = VENUE_PROGRAMS,
) -> Optional[list[BalanceDelta]]:
    """Signed balance deltas of `owner` in `transaction`.

    Returns None for transactions that cannot be trades of the owner: no meta
    block, no identifiable signer, or a signer other than the owner.

    Token mints with zero net change are omitted. A native SOL delta built
    from the signer's lamport balances is always appended last.
    """
    if not transaction:
        return None
    meta = transaction.get("meta")
    if not meta:
        return None

    signer = find_signer(transaction)
    if signer is None:
        return None
    signer_index, signer_pubkey = signer
    if signer_pubkey != owner:
        return None

    program_id = first_venue_program(transaction, venues)

    pre = collect_snapshots(meta.get("preTokenBalances"), owner)
    post = collect_snapshots(meta.get("postTokenBalances"), owner)

    deltas: list[BalanceDelta] = []

    for mint, post_snapshot in post.items():
        pre_snapshot = pre.get(mint) or TokenBalanceSnapshot(
            owner=owner, mint=mint, amount=0, decimals=post_snapshot.decimals
        )
        difference = post_snapshot.amount - pre_snapshot.amount
        if difference != 0:
            deltas.append(BalanceDelta(
                mint=mint,
                amount=difference,
                decimals=post_snapshot.decimals,
                program_id=program_id,
                pre_amount=pre_snapshot.amount,
            ))

    # Token accounts closed in the tx only show up in preTokenBalances
    for mint, pre_snapshot in pre.items():
        if mint in post or pre_snapshot.amount == 0:
            continue
        deltas.append(BalanceDelta(
            mint=mint,
            amount=-pre_snapshot.amount,
            decimals=pre_snapshot.decimals,
            program_id=program_id,
            pre_amount=pre_snapshot.amount,
        ))

    deltas.append(native_delta(meta, signer_index, program_id))
    return deltas


def native_delta(meta: dict[str, Any], account_index: int, program_id: Optional[str]) -> BalanceDelta:
    """Lamport change of the account at `account_index`."""
    pre_balances = meta.get("preBalances") or []
    post_balances = meta.get("postBalances") or []
    pre_lamports = int(pre_balances[account_index]) if account_index < len(pre_balances) else 0
    post_lamports = int(post_balances[account_index]) if account_index < len(post_balances) else 0
    return BalanceDelta(
        mint=SOL_MINT,
        amount=post_lamports - pre_lamports,
        decimals=SOL_DECIMALS,
        program_id=program_id,
        pre_amount=pre_lamports,
    )
