from typing import Any, Dict, Optional, Union

from eth_abi import decode
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3

# Uniswap V2 style pair Swap event
SWAP_EVENT_SIGNATURE = "Swap(address,uint256,uint256,uint256,uint256,address)"
SWAP_EVENT_TOPIC = Web3.to_hex(Web3.keccak(text=SWAP_EVENT_SIGNATURE))

# Two-asset pool ABI (only what the adapter calls)
PAIR_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "token0",
        "outputs": [{"name": "", "type": "address"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "token1",
        "outputs": [{"name": "", "type": "address"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_DECIMALS_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
]


def to_hex(value: Union[bytes, str]) -> str:
    """0x-prefixed lowercase hex for HexBytes, bytes or hex strings"""
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else "0x" + value.lower()
    return Web3.to_hex(HexBytes(value))


def topic_to_address(topic: Union[bytes, str]) -> ChecksumAddress:
    """Checksum address held in the low 20 bytes of an indexed topic"""
    return Web3.to_checksum_address(HexBytes(topic)[-20:])


def decode_swap_log(log: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Decode a pair Swap log.

    Args:
        log: Log receipt as delivered by a logs subscription

    Returns:
        Optional[Dict[str, Any]]: transaction_hash, log_index, block_number,
        sender, recipient and the four raw amounts; None if the log is not a
        well-formed Swap
    """
    topics = log.get("topics") or []
    if len(topics) < 3 or to_hex(topics[0]) != SWAP_EVENT_TOPIC:
        return None

    data = HexBytes(log.get("data") or b"")
    if len(data) != 128:
        return None

    amount0_in, amount1_in, amount0_out, amount1_out = decode(["uint256"] * 4, bytes(data))

    block_number = log.get("blockNumber")
    log_index = log.get("logIndex")
    return {
        "transaction_hash": to_hex(log["transactionHash"]),
        "log_index": int(log_index, 16) if isinstance(log_index, str) else log_index,
        "block_number": int(block_number, 16) if isinstance(block_number, str) else block_number,
        "sender": topic_to_address(topics[1]),
        "recipient": topic_to_address(topics[2]),
        "amount0_in": amount0_in,
        "amount1_in": amount1_in,
        "amount0_out": amount0_out,
        "amount1_out": amount1_out,
    }
