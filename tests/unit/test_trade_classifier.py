"""Tests for the trade classifier"""
import pytest

from swapwatch.core.models import SOL_MINT, BalanceDelta, TradeDirection
from swapwatch.parsing.trade_classifier import TradeClassifier
from swapwatch.parsing.venues import (
    JUPITER_PROGRAM,
    PUMP_FUN_PROGRAM,
    UNKNOWN_VENUE,
    venue_name,
)

TOKEN_A = "TokenAaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
TOKEN_B = "TokenBbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
TOKEN_C = "TokenCccccccccccccccccccccccccccccccccccccc"
SYSTEM_PROGRAM = "11111111111111111111111111111111"


@pytest.fixture
def classifier(trader_wallet):
    return TradeClassifier(trader_wallet)


def test_no_venue_program_is_not_a_trade(classifier, make_tx, trader_wallet):
    """Test: valid deltas but no allowlisted program -> None"""
    tx = make_tx(
        programs=(SYSTEM_PROGRAM,),
        post=[(trader_wallet, TOKEN_A, 500, 6)],
        pre_lamports=3_000_000_000,
    )

    assert classifier.parse(tx) is None
    assert classifier.get_stats()["no_venue"] == 1


def test_signer_mismatch_is_not_a_trade(classifier, make_tx, other_wallet):
    tx = make_tx(
        signer=other_wallet,
        post=[(other_wallet, TOKEN_A, 500, 6)],
        pre_lamports=3_000_000_000,
    )
    deltas = TradeClassifier(other_wallet).compute_deltas(tx)

    assert classifier.classify(tx, deltas) is None
    assert classifier.get_stats()["signer_mismatch"] == 1


def test_sol_for_token_is_buy(classifier, make_tx, trader_wallet):
    """Test: SOL spent, token received -> BUY with SOL as input"""
    tx = make_tx(
        post=[(trader_wallet, TOKEN_A, 500_000, 6)],
        pre_lamports=3_000_000_000,
        post_lamports=2_000_000_000,
    )

    trade = classifier.parse(tx)

    assert trade.direction is TradeDirection.BUY
    assert trade.trader == trader_wallet
    assert (trade.input.mint, trade.input.amount) == (SOL_MINT, 1_000_000_000)
    assert (trade.output.mint, trade.output.amount) == (TOKEN_A, 500_000)
    assert trade.venue == "JUPITER"


def test_token_for_sol_is_sell(classifier, make_tx, trader_wallet):
    tx = make_tx(
        programs=(PUMP_FUN_PROGRAM,),
        pre=[(trader_wallet, TOKEN_A, 500_000, 6)],
        post=[(trader_wallet, TOKEN_A, 100_000, 6)],
        pre_lamports=1_000_000_000,
        post_lamports=1_250_000_000,
    )

    trade = classifier.parse(tx)

    assert trade.direction is TradeDirection.SELL
    assert (trade.input.mint, trade.input.amount) == (TOKEN_A, 400_000)
    assert (trade.output.mint, trade.output.amount) == (SOL_MINT, 250_000_000)
    assert trade.venue == "PUMPFUN"
    assert trade.token_mint == TOKEN_A


def test_token_for_token_uses_signs(classifier, make_tx, trader_wallet):
    """Test: no SOL side -> negative is input, positive is output, SELL"""
    tx = make_tx(
        pre=[(trader_wallet, TOKEN_A, 1_000, 6)],
        post=[(trader_wallet, TOKEN_A, 0, 6), (trader_wallet, TOKEN_B, 3_000, 6)],
        post_lamports=2_000_000_000 - 5_000,
    )

    trade = classifier.parse(tx)

    assert trade.direction is TradeDirection.SELL
    assert (trade.input.mint, trade.input.amount) == (TOKEN_A, 1_000)
    assert (trade.output.mint, trade.output.amount) == (TOKEN_B, 3_000)


def test_role_assignment_independent_of_order(classifier, make_tx, trader_wallet):
    tx = make_tx(
        pre=[(trader_wallet, TOKEN_A, 1_000, 6)],
        post=[(trader_wallet, TOKEN_A, 0, 6), (trader_wallet, TOKEN_B, 3_000, 6)],
    )
    deltas = classifier.compute_deltas(tx)

    forward = classifier.classify(tx, deltas)
    backward = classifier.classify(tx, list(reversed(deltas)))

    assert forward == backward


def test_largest_delta_of_each_sign_wins(classifier, make_tx, trader_wallet):
    tx = make_tx(
        post=[(trader_wallet, TOKEN_A, 10, 6), (trader_wallet, TOKEN_B, 9_000, 6)],
        pre_lamports=3_000_000_000,
        post_lamports=2_000_000_000,
    )

    trade = classifier.parse(tx)

    assert trade.output.mint == TOKEN_B


def test_wrapped_sol_merges_with_native(classifier, make_tx, trader_wallet):
    """Test: wSOL account spent + native fee count as one SOL input"""
    tx = make_tx(
        pre=[(trader_wallet, SOL_MINT, 1_000_000_000, 9)],
        post=[(trader_wallet, TOKEN_A, 42, 6)],
        pre_lamports=2_000_000_000,
        post_lamports=1_999_995_000,
    )

    trade = classifier.parse(tx)

    assert trade.direction is TradeDirection.BUY
    assert (trade.input.mint, trade.input.amount) == (SOL_MINT, 1_000_005_000)


def test_fee_only_transaction_is_not_a_trade(classifier, make_tx):
    tx = make_tx(post_lamports=2_000_000_000 - 5_000)

    assert classifier.parse(tx) is None
    assert classifier.get_stats()["insufficient_deltas"] == 1


def test_same_sign_deltas_are_not_a_trade(classifier, make_tx, trader_wallet):
    """Test: everything received, nothing given up -> None"""
    tx = make_tx(
        post=[(trader_wallet, TOKEN_A, 10, 6), (trader_wallet, TOKEN_C, 20, 6)],
        post_lamports=2_100_000_000,
    )

    assert classifier.parse(tx) is None


def test_classify_with_hand_built_deltas(classifier, make_tx, trader_wallet):
    tx = make_tx()
    deltas = [
        BalanceDelta(mint=TOKEN_A, amount=777, decimals=6, program_id=JUPITER_PROGRAM, pre_amount=0),
        BalanceDelta(mint=SOL_MINT, amount=-5_000_000, decimals=9, program_id=JUPITER_PROGRAM,
                     pre_amount=10_000_000),
    ]

    trade = classifier.classify(tx, deltas)

    assert trade.direction is TradeDirection.BUY
    assert trade.output.amount == 777


def test_unparsable_transaction_counted(classifier, make_tx):
    assert classifier.parse(make_tx(with_meta=False)) is None
    stats = classifier.get_stats()
    assert stats["total"] == 1
    assert stats["unparsable"] == 1


def test_stats_count_buys_and_sells(classifier, make_tx, trader_wallet):
    classifier.parse(make_tx(post=[(trader_wallet, TOKEN_A, 5, 6)], pre_lamports=3_000_000_000))
    classifier.parse(make_tx(pre=[(trader_wallet, TOKEN_A, 5, 6)], post_lamports=3_000_000_000))

    stats = classifier.get_stats()
    assert (stats["trades"], stats["buys"], stats["sells"]) == (2, 1, 1)


def test_venue_name_lookup():
    assert venue_name(JUPITER_PROGRAM) == "JUPITER"
    assert venue_name("SomethingElse1111111111111111111111111111111") == UNKNOWN_VENUE
    assert venue_name(None) == UNKNOWN_VENUE


def test_dust_sell_below_fees_is_not_a_trade(classifier, make_tx, trader_wallet):
    """Test: token spent but SOL still down after fees -> None, insufficient_deltas"""
    tx = make_tx(
        pre=[(trader_wallet, TOKEN_A, 10, 6)],
        post=[(trader_wallet, TOKEN_A, 0, 6)],
        pre_lamports=2_000_000_000,
        post_lamports=2_000_000_000 - 5_000 + 1_000,
    )

    assert classifier.parse(tx) is None
    assert classifier.get_stats()["insufficient_deltas"] == 1
