from dataclasses import dataclass
from typing import Optional

from anoncheckin.core.config import Settings

from .checkin import CheckInCoordinator
from .meeting import MeetingLifecycleController
from .network import NetworkGate
from .reader import ReadHandle, ResilientReader, retry
from .registry import MeetingRegistry
from .session import WalletSession
from .submitter import TransactionSubmitter
from .wallet import (
    AccountWatcher,
    LocalAccountWallet,
    WalletBridgeProvider,
    WalletProvider,
)


@dataclass(frozen=True)
class LedgerServices:
    """The wired ledger services for one process."""

    settings: Settings
    gate: NetworkGate
    session: WalletSession
    reader: ResilientReader
    submitter: TransactionSubmitter
    registry: MeetingRegistry
    checkins: CheckInCoordinator
    meetings: MeetingLifecycleController


def create_wallet(settings: Settings) -> Optional[LocalAccountWallet]:
    """Server-side signing wallet, if a key is configured."""
    if settings.SIGNER_PRIVATE_KEY is None:
        return None
    return LocalAccountWallet(
        settings.SIGNER_PRIVATE_KEY.get_secret_value(),
        settings.RPC_URL,
        settings.CHAIN_ID,
        timeout=settings.RPC_TIMEOUT,
    )


def build_services(settings: Settings, wallet: Optional[WalletProvider] = None) -> LedgerServices:
    """Wire the services; with a wallet, its account changes are followed from now on."""
    gate = NetworkGate(settings, wallet)
    session = WalletSession(gate)
    session.start_watching()
    reader = ResilientReader(settings, gate)
    submitter = TransactionSubmitter(settings, gate, session)
    return LedgerServices(
        settings=settings,
        gate=gate,
        session=session,
        reader=reader,
        submitter=submitter,
        registry=MeetingRegistry(settings, reader),
        checkins=CheckInCoordinator(reader, submitter),
        meetings=MeetingLifecycleController(reader, submitter),
    )


__all__ = [
    # network
    "NetworkGate",
    # reads
    "ReadHandle",
    "ResilientReader",
    "retry",
    "MeetingRegistry",
    # writes
    "TransactionSubmitter",
    "CheckInCoordinator",
    "MeetingLifecycleController",
    # wallet
    "AccountWatcher",
    "LocalAccountWallet",
    "WalletBridgeProvider",
    "WalletProvider",
    "WalletSession",
    # wiring
    "LedgerServices",
    "build_services",
    "create_wallet",
]
