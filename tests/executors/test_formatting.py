from datetime import datetime, timezone
from decimal import Decimal

import pytest

from swapwatch.core.models import Direction, GateDecision, TrackedToken, Transaction
from swapwatch.executors.formatting import (
    explorer_url,
    format_large_number,
    format_number,
    format_timestamp,
    format_usd,
    render_alert,
    shorten_address,
)

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture
def token():
    return TrackedToken(id=1, chain="solana", token_address="Mint111", symbol="BONK", channel_id=-100)


def make_transaction(direction=Direction.BUY, usd_value=Decimal("1234.5")):
    return Transaction(
        id=1,
        token_id=1,
        chain="solana",
        tx_hash="5sig",
        wallet_address=WALLET,
        direction=direction,
        token_amount=Decimal("1500000"),
        native_amount=Decimal("8.25"),
        usd_value=usd_value,
        timestamp=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )


def test_number_formatting():
    assert shorten_address(WALLET) == "7xKX...gAsU"
    assert shorten_address("short") == "short"
    assert format_number(Decimal("1234.5"), 4) == "1,234.5000"
    assert format_usd(Decimal("1234.5")) == "$1,234.50"
    assert format_usd(-3) == "-$3.00"
    assert format_large_number(2500000) == "2.50M"
    assert format_large_number(Decimal("3100000000")) == "3.10B"
    assert format_large_number(950) == "950.00"
    assert format_timestamp(datetime(2024, 5, 1, 9, 5, tzinfo=timezone.utc)) == "May 01, 2024 09:05 UTC"


def test_explorer_urls():
    assert explorer_url("solana", "abc") == "https://solscan.io/tx/abc"
    assert explorer_url("BSC", "0x1") == "https://bscscan.com/tx/0x1"
    assert explorer_url("ethereum", "0x1") == "https://etherscan.io/tx/0x1"


def test_render_buy(token):
    text = render_alert(
        token, make_transaction(), GateDecision(emit=True, emoji="🤑"), market_cap=Decimal("2500000")
    )

    assert text.splitlines()[0] == "🤑 <b>New BONK Buy!</b>"
    assert "<b>Amount:</b> 1,500,000.0000 BONK" in text
    assert "<b>Value:</b> 8.2500 SOL (~$1,234.50)" in text
    assert "<b>Market Cap:</b> $2.50M" in text
    assert f'<a href="https://solscan.io/account/{WALLET}">7xKX...gAsU</a>' in text
    assert "<b>Time:</b> May 01, 2024 12:30 UTC" in text
    assert '<a href="https://solscan.io/tx/5sig">View Transaction</a>' in text
    assert "WHALE" not in text


def test_render_whale_banner(token):
    text = render_alert(token, make_transaction(), GateDecision(emit=True, emoji="🐋", is_whale=True))

    assert text.splitlines()[0] == "🐋🐋🐋 <b>WHALE ALERT</b> 🐋🐋🐋"
    assert "Market Cap" not in text


def test_render_sell_without_usd(token):
    text = render_alert(
        token,
        make_transaction(direction=Direction.SELL, usd_value=None),
        GateDecision(emit=True, emoji="🐋", is_whale=True),
        market_cap=Decimal("100"),
    )

    assert text.splitlines()[0] == "📉 <b>New BONK Sell</b>"
    assert "<b>Value:</b> 8.2500 SOL\n" in text
    assert "Market Cap" not in text
    assert "WHALE" not in text


def test_symbol_is_html_escaped(token):
    token = token.model_copy(update={"symbol": "<b>X&Y"})
    text = render_alert(token, make_transaction(), GateDecision(emit=True))

    assert "New &lt;b&gt;X&amp;Y Buy!" in text


def test_tier_emoji_is_html_escaped(token):
    text = render_alert(token, make_transaction(), GateDecision(emit=True, emoji="<i>&"))

    assert text.splitlines()[0] == "&lt;i&gt;&amp; <b>New BONK Buy!</b>"
