"""Wallet capability interface and backends.

A wallet is anything that answers EIP-1193 style ``request(method, params)``
calls and emits ``accountsChanged`` / ``chainChanged`` events. Browser
wallets reach the service through that interface; ``LocalAccountWallet`` is
the server-side backend that signs with a configured key.
"""
import itertools
import queue
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Sequence

import structlog
from eth_account import Account
from web3 import HTTPProvider, Web3
from web3.exceptions import Web3Exception
from web3.providers.base import BaseProvider

from anoncheckin.core.constants import WALLET_UNRECOGNIZED_CHAIN, WALLET_USER_REJECTED
from anoncheckin.core.errors import WalletRequestError

logger = structlog.get_logger(__name__)

# JSON-RPC / EIP-1193 codes used by the local backend
UNAUTHORIZED = 4100
INTERNAL_ERROR = -32603

NUMERIC_TX_FIELDS = ("gas", "gasPrice", "maxFeePerGas", "maxPriorityFeePerGas", "value", "nonce", "chainId")


class WalletProvider(Protocol):
    """Capabilities the ledger services need from a wallet."""

    def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        ...

    def on(self, event: str, handler: Callable[..., None]) -> None:
        ...

    def remove_listener(self, event: str, handler: Callable[..., None]) -> None:
        ...


class WalletBridgeProvider(BaseProvider):
    """web3 provider forwarding JSON-RPC calls to a ``WalletProvider``.

    Wallet errors are turned back into JSON-RPC error responses so web3
    raises its usual exceptions (including revert reasons).
    """

    def __init__(self, wallet: WalletProvider):
        super().__init__()
        self.wallet = wallet
        self._request_ids = itertools.count(1)

    def make_request(self, method, params):
        request_id = next(self._request_ids)
        try:
            result = self.wallet.request(method, list(params or []))
        except WalletRequestError as exc:
            error = {"code": exc.code, "message": exc.message}
            if exc.data is not None:
                error["data"] = exc.data
            return {"jsonrpc": "2.0", "id": request_id, "error": error}
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def is_connected(self, show_traceback: bool = False) -> bool:
        try:
            self.wallet.request("eth_chainId", [])
        except Exception:
            if show_traceback:
                raise
            return False
        return True


class EventEmitter:
    """Minimal thread-safe ``on`` / ``remove_listener`` / ``emit``."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., None]]] = defaultdict(list)
        self._listeners_lock = threading.Lock()

    def on(self, event: str, handler: Callable[..., None]) -> None:
        with self._listeners_lock:
            self._listeners[event].append(handler)

    def remove_listener(self, event: str, handler: Callable[..., None]) -> None:
        with self._listeners_lock:
            if handler in self._listeners[event]:
                self._listeners[event].remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        with self._listeners_lock:
            handlers = list(self._listeners[event])
        for handler in handlers:
            handler(*args)


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


class LocalAccountWallet(EventEmitter):
    """
    Server-side wallet signing with a private key.

    It keeps its own notion of the current chain (like a browser wallet) and
    the RPC endpoint for each chain it knows. Reads and gas estimation are
    forwarded to the current endpoint; ``eth_sendTransaction`` is signed
    locally and sent as a raw transaction.

    Args:
        private_key: Hex private key of the signing account
        rpc_url: Endpoint of the initial chain
        chain_id: Chain id served by ``rpc_url``
        timeout: HTTP timeout for node requests, in seconds
    """

    def __init__(self, private_key: str, rpc_url: str, chain_id: int, timeout: float = 30.0):
        super().__init__()
        self._account = Account.from_key(private_key)
        self._endpoints: Dict[int, str] = {chain_id: rpc_url}
        self._chain_id = chain_id
        self._timeout = timeout
        self._lock = threading.RLock()

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def _node(self) -> Web3:
        return Web3(HTTPProvider(self._endpoints[self._chain_id], request_kwargs={"timeout": self._timeout}))

    def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        params = list(params or [])
        with self._lock:
            if method == "eth_chainId":
                return hex(self._chain_id)
            if method in ("eth_accounts", "eth_requestAccounts"):
                return [self._account.address]
            if method == "wallet_switchEthereumChain":
                return self._switch_chain(params)
            if method == "wallet_addEthereumChain":
                return self._add_chain(params)
            if method == "eth_sendTransaction":
                return self._send_transaction(params[0])
            return self._forward(method, params)

    def _switch_chain(self, params: List[Any]) -> None:
        chain_id = _to_int(params[0]["chainId"])
        if chain_id not in self._endpoints:
            raise WalletRequestError(WALLET_UNRECOGNIZED_CHAIN, f"Unrecognized chain ID {hex(chain_id)}")
        if chain_id != self._chain_id:
            self._chain_id = chain_id
            logger.info("wallet_chain_switched", chain_id=chain_id)
            self.emit("chainChanged", hex(chain_id))
        return None

    def _add_chain(self, params: List[Any]) -> None:
        chain = params[0]
        rpc_urls = chain.get("rpcUrls") or []
        if not rpc_urls:
            raise WalletRequestError(WALLET_USER_REJECTED, "Chain has no RPC endpoint")
        chain_id = _to_int(chain["chainId"])
        self._endpoints[chain_id] = rpc_urls[0]
        logger.info("wallet_chain_added", chain_id=chain_id, chain_name=chain.get("chainName"))
        return None

    def _forward(self, method: str, params: List[Any]) -> Any:
        response = self._node().provider.make_request(method, params)
        if response.get("error"):
            error = response["error"]
            raise WalletRequestError(error.get("code", INTERNAL_ERROR), error.get("message", ""), error.get("data"))
        return response.get("result")

    def _send_transaction(self, transaction: Dict[str, Any]) -> str:
        tx = dict(transaction)
        sender = tx.pop("from", self._account.address)
        if sender.lower() != self._account.address.lower():
            raise WalletRequestError(UNAUTHORIZED, f"Account {sender} is not managed by this wallet")

        for field in NUMERIC_TX_FIELDS:
            if field in tx:
                tx[field] = _to_int(tx[field])

        node = self._node()
        tx.setdefault("chainId", self._chain_id)
        if "nonce" not in tx:
            tx["nonce"] = node.eth.get_transaction_count(self._account.address, "pending")
        if "gas" not in tx:
            tx["gas"] = self._forward_int("eth_estimateGas", [{**_hexify(tx), "from": self._account.address}])
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tip = node.eth.max_priority_fee
            base_fee = node.eth.get_block("latest")["baseFeePerGas"]
            tx["maxPriorityFeePerGas"] = tip
            tx["maxFeePerGas"] = base_fee * 2 + tip

        signed = self._account.sign_transaction(tx)
        try:
            tx_hash = node.eth.send_raw_transaction(signed.raw_transaction)
        except (ValueError, Web3Exception) as exc:
            raise WalletRequestError(INTERNAL_ERROR, str(exc)) from exc
        logger.info("wallet_transaction_sent", tx_hash=Web3.to_hex(tx_hash), nonce=tx["nonce"])
        return Web3.to_hex(tx_hash)

    def _forward_int(self, method: str, params: List[Any]) -> int:
        return _to_int(self._forward(method, params))


def _hexify(tx: Dict[str, Any]) -> Dict[str, Any]:
    return {key: hex(value) if isinstance(value, int) else value for key, value in tx.items()}


_CLOSED = object()


class AccountWatcher:
    """
    Subscription to a wallet's ``accountsChanged`` notifications.

    ``events()`` is a lazy, unbounded iterator of account lists; the handler
    only enqueues, consumers decide what to do with each change.

    Usage:
        with AccountWatcher(wallet) as watcher:
            for accounts in watcher.events():
                session.handle_accounts_changed(accounts)
    """

    def __init__(self, wallet: WalletProvider):
        self._wallet = wallet
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = False
        wallet.on("accountsChanged", self._on_accounts_changed)

    def _on_accounts_changed(self, accounts: Sequence[str]) -> None:
        self._queue.put(list(accounts))

    def events(self, timeout: Optional[float] = None) -> Iterator[List[str]]:
        """Yield account lists as they arrive; stops on ``close()`` or timeout."""
        while True:
            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                return
            if item is _CLOSED:
                return
            yield item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._wallet.remove_listener("accountsChanged", self._on_accounts_changed)
        self._queue.put(_CLOSED)

    def __enter__(self) -> "AccountWatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
