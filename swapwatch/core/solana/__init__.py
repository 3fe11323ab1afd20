from .rpc import RpcError, SolanaRpcClient

__all__ = ["RpcError", "SolanaRpcClient"]
