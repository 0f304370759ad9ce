"""
Telegram MarkdownV2 rendering of a classified trade.

Raw amounts are scaled by each mint's decimals. USD value, price ratio and
market cap are taken from the SOL side when SOL was spent, otherwise from
the token that was received.
"""

import math
import re
from dataclasses import dataclass

from swapwatch.core.models import SOL_MINT, TradeDirection, TradeRecord
from swapwatch.data_providers.jupiter_price import TokenPrices
from swapwatch.data_providers.token_metadata import TokenMetadata

SOLSCAN_URL = "https://solscan.io"
JUPITER_SWAP_URL = "https://jup.ag/swap"

BUY_EMOJI = "🟢"
SELL_EMOJI = "🔴"
BULLET = "🔹"

_MARKDOWN_SPECIAL = re.compile(r"([\\_*\[\]()~`>#+=|{}.!\-])")


@dataclass(frozen=True)
class FormattedMessage:
    text: str
    url: str

    @property
    def is_trade(self) -> bool:
        return bool(self.text) and bool(self.url)


NOT_A_TRADE = FormattedMessage(text="", url="")


def escape_markdown(text: str) -> str:
    """Escape every MarkdownV2 special character."""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", str(text))


def format_amount(amount: float) -> str:
    """Two decimals with thousands separators: 1234.5 -> '1,234.50'."""
    return f"{amount:,.2f}"


def format_mcap(mcap: float) -> str:
    if mcap >= 1_000_000_000:
        return f"${format_amount(mcap / 1_000_000_000)}B"
    if mcap >= 1_000_000:
        return f"${format_amount(mcap / 1_000_000)}M"
    if mcap >= 1_000:
        return f"${format_amount(mcap / 1_000)}K"
    return f"${format_amount(mcap)}"


def format_price(value: float) -> str:
    """Unit price with four significant digits below 1, e.g. 0.0001235."""
    if value == 0 or not math.isfinite(value):
        return "0"
    if abs(value) >= 1:
        return format_amount(value)
    decimals = -math.floor(math.log10(abs(value))) + 3
    return f"{value:.{decimals}f}"


def market_cap(price: float, metadata: TokenMetadata) -> float:
    return price * metadata.supply / 10 ** metadata.decimals


def trade_url(trade: TradeRecord) -> str:
    return f"{JUPITER_SWAP_URL}/{trade.output.mint}-{trade.input.mint}"


def format_trade(
    trade: TradeRecord,
    signature: str,
    trader_name: str,
    input_meta: TokenMetadata,
    output_meta: TokenMetadata,
    prices: TokenPrices,
) -> FormattedMessage:
    in_amount = trade.input.amount / 10 ** input_meta.decimals
    out_amount = trade.output.amount / 10 ** output_meta.decimals
    in_usd = in_amount * prices.input
    out_usd = out_amount * prices.output

    if trade.input.mint == SOL_MINT:
        total_value = in_usd
        ratio = in_usd / out_amount if out_amount else 0.0
        mcap = market_cap(prices.output, output_meta)
    else:
        total_value = out_usd
        ratio = out_usd / in_amount if in_amount else 0.0
        mcap = market_cap(prices.input, input_meta)

    in_symbol = escape_markdown(input_meta.symbol)
    out_symbol = escape_markdown(output_meta.symbol)
    name = escape_markdown(trader_name)
    in_amount_text = escape_markdown(format_amount(in_amount))
    out_amount_text = escape_markdown(format_amount(out_amount))
    in_link = f"[{in_symbol}]({SOLSCAN_URL}/token/{trade.input.mint})"
    out_link = f"[{out_symbol}]({SOLSCAN_URL}/token/{trade.output.mint})"
    trader_link = f"[{name}]({SOLSCAN_URL}/account/{trade.trader})"

    if trade.direction is TradeDirection.BUY:
        emoji, headline_symbol = BUY_EMOJI, out_symbol
    else:
        emoji, headline_symbol = SELL_EMOJI, in_symbol

    url = trade_url(trade)
    lines = [
        f"{emoji} [{trade.direction.value} {headline_symbol}]({SOLSCAN_URL}/tx/{signature})"
        f" on {escape_markdown(trade.venue)}",
        f"`{trade.trader}` \\({name}\\)\n",
        f"{BULLET}{trader_link} swapped *{in_amount_text}* {in_link} for {out_amount_text}"
        f" \\(${escape_markdown(format_amount(total_value))}\\) {out_link}"
        f" @${escape_markdown(format_price(ratio))}\n",
        f"{BULLET}{trader_link}:",
        f"{in_link}: `\\-{in_amount_text} \\(${escape_markdown(format_amount(in_usd))}\\)`",
        f"{out_link}: `\\+{out_amount_text} \\(${escape_markdown(format_amount(out_usd))}\\)`",
        f"\n[Trade {out_symbol} \\- {in_symbol}]({url}) \\| MC: {escape_markdown(format_mcap(mcap))}",
        f"`{trade.token_mint}`",
    ]
    return FormattedMessage(text="\n".join(lines), url=url)
