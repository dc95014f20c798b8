"""Network negotiation.

Every read and write goes through ``NetworkGate.resolve_provider()`` so it
runs against the configured chain, whatever chain the wallet happens to be on.
"""
import threading
from typing import Any, List, Optional

import structlog
from web3 import HTTPProvider, Web3

from anoncheckin.core.config import Settings
from anoncheckin.core.constants import WALLET_UNRECOGNIZED_CHAIN, WALLET_USER_REJECTED
from anoncheckin.core.errors import NetworkRejected, WalletRequestError
from anoncheckin.services.wallet import WalletBridgeProvider, WalletProvider

logger = structlog.get_logger(__name__)


def parse_chain_id(value: Any) -> int:
    """Wallets answer ``eth_chainId`` with a hex string; some with an int."""
    if isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    return int(value)


class NetworkGate:
    """
    Guarantees the connection targets ``settings.CHAIN_ID``.

    With a wallet, a chain mismatch triggers ``wallet_switchEthereumChain``;
    an unknown chain is registered with ``wallet_addEthereumChain`` and the
    switch retried once. Without a wallet a read-only HTTP endpoint is used.

    Negotiations are serialized: a second caller waits for the first and then
    finds the wallet already on the right chain, so the user sees at most one
    prompt per mismatch.
    """

    def __init__(self, settings: Settings, wallet: Optional[WalletProvider] = None):
        self.settings = settings
        self.wallet = wallet
        self._negotiation_lock = threading.Lock()

    @property
    def has_wallet(self) -> bool:
        return self.wallet is not None

    def resolve_provider(self) -> Web3:
        """
        Return a connected web3 handle on the required chain.

        A new handle is built on every call: a handle created before a chain
        switch is stale.

        Raises:
            NetworkRejected: If the user declines the switch or registration
            WalletRequestError: For any other wallet failure
        """
        if self.wallet is None:
            return Web3(HTTPProvider(
                self.settings.RPC_URL,
                request_kwargs={"timeout": self.settings.RPC_TIMEOUT},
            ))

        with self._negotiation_lock:
            self._ensure_chain()
            return Web3(WalletBridgeProvider(self.wallet))

    def request_accounts(self) -> List[str]:
        """Ask the wallet for its accounts (may prompt for connection)."""
        if self.wallet is None:
            return []
        return list(self.wallet.request("eth_requestAccounts", []) or [])

    def wallet_chain_id(self) -> int:
        return parse_chain_id(self.wallet.request("eth_chainId", []))

    def _ensure_chain(self) -> None:
        target = self.settings.CHAIN_ID
        current = self.wallet_chain_id()
        if current == target:
            return

        logger.info("chain_switch_requested", current_chain_id=current, target_chain_id=target)
        try:
            self._switch_chain()
        except WalletRequestError as exc:
            if exc.code == WALLET_USER_REJECTED:
                logger.warning("chain_switch_rejected", target_chain_id=target)
                raise NetworkRejected(f"Switch to chain {target} was rejected") from exc
            if exc.code != WALLET_UNRECOGNIZED_CHAIN:
                raise
            self._register_chain()
            self._switch_chain_once_more()

        logger.info("chain_switched", chain_id=target)

    def _switch_chain(self) -> None:
        self.wallet.request("wallet_switchEthereumChain", [{"chainId": hex(self.settings.CHAIN_ID)}])

    def _register_chain(self) -> None:
        logger.info("chain_registration_requested", chain_id=self.settings.CHAIN_ID, chain_name=self.settings.CHAIN_NAME)
        try:
            self.wallet.request("wallet_addEthereumChain", [self.settings.chain_parameters()])
        except WalletRequestError as exc:
            if exc.code == WALLET_USER_REJECTED:
                logger.warning("chain_registration_rejected", chain_id=self.settings.CHAIN_ID)
                raise NetworkRejected(f"Registration of chain {self.settings.CHAIN_ID} was rejected") from exc
            raise

    def _switch_chain_once_more(self) -> None:
        try:
            self._switch_chain()
        except WalletRequestError as exc:
            if exc.code == WALLET_USER_REJECTED:
                raise NetworkRejected(f"Switch to chain {self.settings.CHAIN_ID} was rejected") from exc
            raise
