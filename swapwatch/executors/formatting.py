"""
Message rendering for swap alerts (Telegram HTML parse mode)
"""

from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Optional, Union

from swapwatch.core.models import Direction, GateDecision, TrackedToken, Transaction

Number = Union[int, float, Decimal]

TX_EXPLORERS = {
    "solana": "https://solscan.io/tx",
    "ethereum": "https://etherscan.io/tx",
    "bsc": "https://bscscan.com/tx",
}

WALLET_EXPLORERS = {
    "solana": "https://solscan.io/account",
    "ethereum": "https://etherscan.io/address",
    "bsc": "https://bscscan.com/address",
}


def shorten_address(address: str, chars: int = 4) -> str:
    if not address or len(address) <= chars * 2:
        return address
    return f"{address[:chars]}...{address[-chars:]}"


def format_number(value: Number, decimals: int = 2) -> str:
    return f"{Decimal(str(value)):,.{decimals}f}"


def format_usd(value: Number) -> str:
    amount = Decimal(str(value))
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_large_number(value: Number) -> str:
    amount = float(value)
    if amount >= 1e9:
        return f"{amount / 1e9:.2f}B"
    if amount >= 1e6:
        return f"{amount / 1e6:.2f}M"
    if amount >= 1e3:
        return f"{amount / 1e3:.2f}K"
    return f"{amount:.2f}"


def format_timestamp(timestamp: datetime) -> str:
    return timestamp.strftime("%b %d, %Y %H:%M UTC")


def explorer_url(chain: str, tx_hash: str) -> str:
    base = TX_EXPLORERS.get(chain.lower(), TX_EXPLORERS["ethereum"])
    return f"{base}/{tx_hash}"


def wallet_explorer_url(chain: str, address: str) -> str:
    base = WALLET_EXPLORERS.get(chain.lower(), WALLET_EXPLORERS["ethereum"])
    return f"{base}/{address}"


def render_alert(
    token: TrackedToken,
    transaction: Transaction,
    decision: GateDecision,
    market_cap: Optional[Decimal] = None,
) -> str:
    """
    Render the alert text for a recorded swap.

    Buys carry the value emoji, the whale banner and market cap; sells use
    a plain header.
    """
    symbol = escape(token.symbol)
    is_buy = transaction.direction == Direction.BUY

    lines = []
    if is_buy:
        if decision.is_whale:
            lines.append("🐋🐋🐋 <b>WHALE ALERT</b> 🐋🐋🐋")
        lines.append(f"{escape(decision.emoji or '💰')} <b>New {symbol} Buy!</b>")
    else:
        lines.append(f"📉 <b>New {symbol} Sell</b>")

    value_line = (
        f"<b>Value:</b> {format_number(transaction.native_amount, 4)} {token.native_symbol}"
    )
    if transaction.usd_value is not None:
        value_line += f" (~{format_usd(transaction.usd_value)})"

    lines += [
        "",
        f"<b>Token:</b> ${symbol}",
        f"<b>Amount:</b> {format_number(transaction.token_amount, 4)} {symbol}",
        value_line,
    ]
    if is_buy and market_cap is not None:
        lines.append(f"<b>Market Cap:</b> ${format_large_number(market_cap)}")

    wallet = transaction.wallet_address
    lines += [
        f'<b>Wallet:</b> <a href="{wallet_explorer_url(transaction.chain, wallet)}">'
        f"{escape(shorten_address(wallet))}</a>",
        f"<b>Time:</b> {format_timestamp(transaction.timestamp)}",
        "",
        f'🔗 <a href="{explorer_url(transaction.chain, transaction.tx_hash)}">View Transaction</a>',
    ]
    return "\n".join(lines)
