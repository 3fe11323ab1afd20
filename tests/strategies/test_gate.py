from datetime import datetime, timezone
from decimal import Decimal

import pytest

from swapwatch.core.models import CustomButton, Direction, EmojiTier, Media, TrackedToken, Transaction
from swapwatch.core.policy import AlertPolicy
from swapwatch.strategies.swap_alert.gate import AlertGate, select_emoji

WALLET = "Wallet1111"


def make_token(**overrides):
    fields = dict(
        id=1,
        chain="solana",
        token_address="Mint111",
        symbol="TEST",
        channel_id=-100123,
        min_amount_usd=50,
        whale_threshold_usd=5000,
    )
    fields.update(overrides)
    return TrackedToken(**fields)


def make_transaction(usd="100", direction=Direction.BUY, token_amount="1000", wallet=WALLET):
    return Transaction(
        id=1,
        token_id=1,
        chain="solana",
        tx_hash="sig1",
        wallet_address=wallet,
        direction=direction,
        token_amount=Decimal(token_amount),
        native_amount=Decimal("0.5"),
        usd_value=Decimal(usd) if usd is not None else None,
        timestamp=datetime.now(timezone.utc),
    )


@pytest.fixture
def gate(mev_filter):
    return AlertGate(mev_filter)


@pytest.mark.asyncio
async def test_usd_threshold_is_inclusive(gate):
    token = make_token()

    below = await gate.should_alert(token, make_transaction("40"))
    at = await gate.should_alert(token, make_transaction("50"))

    assert below.emit is False
    assert below.reason == "below thresholds"
    assert at.emit is True
    assert at.reason == "usd threshold met"


@pytest.mark.asyncio
async def test_unknown_usd_does_not_meet_usd_threshold(gate):
    decision = await gate.should_alert(make_token(), make_transaction(None))
    assert decision.emit is False


@pytest.mark.asyncio
async def test_whale_flag(gate):
    token = make_token()

    assert (await gate.should_alert(token, make_transaction("4999"))).is_whale is False
    whale = await gate.should_alert(token, make_transaction("5000"))
    assert whale.is_whale is True
    assert whale.emit is True


@pytest.mark.asyncio
async def test_no_whale_without_threshold(gate):
    decision = await gate.should_alert(make_token(whale_threshold_usd=0), make_transaction("1000000"))
    assert decision.is_whale is False


@pytest.mark.asyncio
async def test_sells_suppressed_by_default(gate):
    decision = await gate.should_alert(make_token(), make_transaction("500", direction=Direction.SELL))

    assert decision.emit is False
    assert decision.reason == "sell alerts disabled"


@pytest.mark.asyncio
async def test_sells_allowed_by_policy(mev_filter):
    gate = AlertGate(mev_filter, AlertPolicy.from_config({"alert_sells": True}))

    decision = await gate.should_alert(make_token(), make_transaction("500", direction=Direction.SELL))

    assert decision.emit is True


@pytest.mark.asyncio
async def test_blacklisted_wallet_is_skipped(gate, mev_filter):
    await mev_filter.add(WALLET, "solana", "sandwich")

    decision = await gate.should_alert(make_token(), make_transaction("10000"))

    assert decision.emit is False
    assert decision.reason == "wallet blacklisted"


@pytest.mark.asyncio
async def test_blacklist_ignored_when_token_opts_out(gate, mev_filter):
    await mev_filter.add(WALLET, "all")

    decision = await gate.should_alert(make_token(mev_filter_enabled=False), make_transaction("10000"))

    assert decision.emit is True


@pytest.mark.asyncio
async def test_unconfigured_thresholds_alert_everything(gate, mev_filter):
    token = make_token(min_amount_usd=0)

    decision = await gate.should_alert(token, make_transaction("0.01"))
    assert decision.emit is True
    assert decision.reason == "no thresholds configured"

    strict = AlertGate(mev_filter, AlertPolicy(alert_all_when_unconfigured=False))
    assert (await strict.should_alert(token, make_transaction("0.01"))).emit is False


@pytest.mark.asyncio
async def test_token_amount_threshold(gate):
    token = make_token(min_amount=500, min_amount_usd=1000000)

    decision = await gate.should_alert(token, make_transaction("1", token_amount="500"))
    assert decision.emit is True
    assert decision.reason == "token amount threshold met"

    assert (await gate.should_alert(token, make_transaction("1", token_amount="499"))).emit is False


@pytest.mark.asyncio
async def test_decision_carries_decoration(gate):
    token = make_token(
        buttons=[CustomButton(text="Chart", url="https://example.com/chart")],
        media=Media(type="gif", url="https://example.com/buy.gif"),
    )

    decision = await gate.should_alert(token, make_transaction("120"))

    assert decision.emoji == "💵"
    assert decision.buttons[0].text == "Chart"
    assert decision.media.type == "gif"


@pytest.mark.parametrize(
    "usd, emoji",
    [
        (None, "💰"),
        ("0", "💰"),
        ("49.99", "💰"),
        ("50", "💵"),
        ("199", "💵"),
        ("200", "💸"),
        ("1000", "🤑"),
        ("5000", "🐋"),
        ("1000000", "🐋"),
    ],
)
def test_default_emoji_tiers(usd, emoji):
    assert select_emoji([], Decimal(usd) if usd is not None else None) == emoji


def test_configured_emoji_tiers():
    tiers = [
        EmojiTier(min_usd=0, max_usd=100, emoji="🐟"),
        EmojiTier(min_usd=100, max_usd=1000, emoji="🐬"),
    ]

    assert select_emoji(tiers, Decimal("10")) == "🐟"
    assert select_emoji(tiers, Decimal("100")) == "🐬"
    # Beyond every range: last configured tier
    assert select_emoji(tiers, Decimal("5000")) == "🐬"
