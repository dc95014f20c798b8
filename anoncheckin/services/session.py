"""Active wallet account tracking."""
import threading
from typing import Iterator, List, Optional, Sequence

import structlog

from anoncheckin.core.constants import WALLET_USER_REJECTED
from anoncheckin.core.errors import NoSigningCapability, SubmissionFailed, WalletRequestError
from anoncheckin.services.network import NetworkGate
from anoncheckin.services.wallet import AccountWatcher

logger = structlog.get_logger(__name__)


class WalletSession:
    """
    Holds the account state transactions are sent from.

    Explicit connects, disconnects and ``accountsChanged`` notifications all
    go through ``_apply_accounts``; notification handlers never touch the
    state directly.
    """

    def __init__(self, gate: NetworkGate):
        self.gate = gate
        self._account: Optional[str] = None
        self._lock = threading.Lock()
        self._watcher: Optional[AccountWatcher] = None
        self._watch_thread: Optional[threading.Thread] = None

    @property
    def account(self) -> Optional[str]:
        return self._account

    @property
    def can_sign(self) -> bool:
        return self.gate.has_wallet

    def connect(self) -> str:
        """
        Request accounts from the wallet and make the first one active.

        Raises:
            NoSigningCapability: No wallet, no accounts, or the user refused
            SubmissionFailed: Any other wallet failure
        """
        if not self.gate.has_wallet:
            raise NoSigningCapability("No wallet available to connect")
        try:
            accounts = self.gate.request_accounts()
        except WalletRequestError as exc:
            if exc.code == WALLET_USER_REJECTED:
                logger.warning("wallet_connection_rejected")
                raise NoSigningCapability("Wallet connection was rejected") from exc
            logger.warning("wallet_connection_failed", error=str(exc))
            raise SubmissionFailed("eth_requestAccounts", exc) from exc
        account = self._apply_accounts(accounts)
        if account is None:
            raise NoSigningCapability("Wallet returned no accounts")
        return account

    def disconnect(self) -> None:
        self._apply_accounts([])

    def handle_accounts_changed(self, accounts: Sequence[str]) -> Optional[str]:
        return self._apply_accounts(accounts)

    def require_account(self) -> str:
        """Active account, connecting first if needed."""
        return self._account or self.connect()

    def watch(self, timeout: Optional[float] = None) -> Iterator[Optional[str]]:
        """
        Follow the wallet's account changes, yielding the new active account.

        Runs until the watcher times out; meant for a background thread.
        """
        if not self.gate.has_wallet:
            return
        with AccountWatcher(self.gate.wallet) as watcher:
            yield from self._follow(watcher, timeout)

    def start_watching(self) -> None:
        """Apply the wallet's account changes on a daemon thread until ``stop_watching()``."""
        if not self.gate.has_wallet or self._watcher is not None:
            return
        # Changes arriving before the thread runs are queued by the watcher
        self._watcher = AccountWatcher(self.gate.wallet)
        self._watch_thread = threading.Thread(
            target=self._drain,
            args=(self._watcher,),
            name="account-watcher",
            daemon=True,
        )
        self._watch_thread.start()
        logger.info("account_watch_started")

    def stop_watching(self, timeout: float = 5.0) -> None:
        watcher, thread = self._watcher, self._watch_thread
        self._watcher = self._watch_thread = None
        if watcher is not None:
            watcher.close()
        if thread is not None:
            thread.join(timeout)

    def _follow(self, watcher: AccountWatcher, timeout: Optional[float] = None) -> Iterator[Optional[str]]:
        for accounts in watcher.events(timeout=timeout):
            yield self.handle_accounts_changed(accounts)

    def _drain(self, watcher: AccountWatcher) -> None:
        for _ in self._follow(watcher):
            pass

    def _apply_accounts(self, accounts: Sequence[str]) -> Optional[str]:
        current: List[str] = list(accounts or [])
        with self._lock:
            previous = self._account
            account = self._account = current[0] if current else None
        if previous != account:
            logger.info("active_account_changed", previous=previous, account=account)
        return account
