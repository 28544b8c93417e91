from .lifi import LifiProvider
from .wallet_rpc import RpcWalletSigner
from .zerion import ZerionProvider

__all__ = ["LifiProvider", "RpcWalletSigner", "ZerionProvider"]
