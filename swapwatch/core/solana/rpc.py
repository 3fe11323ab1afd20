"""
Minimal Solana JSON-RPC client over httpx.
"""
import itertools
from typing import Any, Dict, List, Optional

import httpx


class RpcError(Exception):
    """JSON-RPC error payload or malformed response from the Solana node"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class SolanaRpcClient:
    """
    Async client for the handful of Solana RPC methods the collector needs.

    Transport failures surface as httpx.HTTPError, error payloads as RpcError.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        commitment: str = "confirmed",
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not rpc_url:
            raise ValueError("rpc_url must be non-empty")
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def call(self, method: str, params: List[Any]) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        response = await self.client.post(self.rpc_url, json=body)
        response.raise_for_status()
        data = response.json()
        if "error" in data:
            error = data["error"] or {}
            raise RpcError(
                f"Solana RPC error in {method}: {error.get('message', error)}",
                code=error.get("code"),
            )
        if "result" not in data:
            raise RpcError(f"Solana RPC returned no result for {method}")
        return data["result"]

    async def get_signatures_for_address(self, address: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent signatures first"""
        return await self.call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self.commitment}],
        ) or []

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        """jsonParsed transaction, or None if the node does not have it (yet)"""
        return await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
