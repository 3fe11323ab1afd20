import pytest

from swapwatch.core.events import Event, SolanaTransactionEvent
from swapwatch.core.models import TrackedToken


@pytest.fixture
def token():
    return TrackedToken(id=7, chain="solana", token_address="Mint111", symbol="BONK", channel_id=-100)


def test_base_event_cannot_be_instantiated(token):
    with pytest.raises(TypeError):
        Event(type="bare", token=token)


def test_event_without_tx_hash_is_abstract(token):
    class HalfEvent(Event):
        type: str = "half"

    with pytest.raises(TypeError):
        HalfEvent(token=token)


def test_chain_comes_from_tracked_token(token):
    class NoteEvent(Event):
        type: str = "note"
        ref: str

        @property
        def tx_hash(self) -> str:
            return self.ref

    event = NoteEvent(token=token, ref="abc")

    assert event.chain == "solana"
    assert event.tx_hash == "abc"


def test_solana_event_identity(token):
    event = SolanaTransactionEvent(token=token, signature="5sig", slot=10, transaction={})

    assert event.chain == "solana"
    assert event.tx_hash == "5sig"
