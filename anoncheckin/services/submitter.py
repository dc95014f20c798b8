"""Signed, state-changing ledger calls."""
from typing import Any, Callable

import structlog
from web3 import Web3

from anoncheckin.core.config import Settings
from anoncheckin.core.errors import NoSigningCapability, SubmissionFailed, WalletRequestError
from anoncheckin.services.network import NetworkGate
from anoncheckin.services.reader import bind_contract
from anoncheckin.services.session import WalletSession

logger = structlog.get_logger(__name__)

# Builds the contract function call to send, e.g. ``lambda c: c.functions.endMeeting(7)``
Operation = Callable[[Any], Any]


def receipt_tx_hash(receipt) -> str:
    return Web3.to_hex(receipt["transactionHash"])


class TransactionSubmitter:
    """
    Sends one transaction and blocks until it is mined.

    Nothing is retried: resubmitting a state change could apply it twice.
    Every failure after the network check surfaces as ``SubmissionFailed``
    with the original exception as its cause.
    """

    def __init__(self, settings: Settings, gate: NetworkGate, session: WalletSession):
        self.settings = settings
        self.gate = gate
        self.session = session

    @property
    def can_sign(self) -> bool:
        return self.gate.has_wallet

    def require_signer(self) -> None:
        if not self.gate.has_wallet:
            raise NoSigningCapability("A signing wallet is required for this action")

    def submit(self, operation: Operation, description: str):
        """
        Submit ``operation`` from the active account and wait for its receipt.

        Returns:
            The confirmed transaction receipt

        Raises:
            NoSigningCapability: No wallet is available, or the user refused to connect
            NetworkRejected: The wallet refused to move to the required chain
            SubmissionFailed: Sending, mining or execution failed
        """
        self.require_signer()
        try:
            w3 = self.gate.resolve_provider()
        except WalletRequestError as exc:
            logger.warning("network_negotiation_failed", operation=description, error=str(exc))
            raise SubmissionFailed(description, exc) from exc
        account = self.session.require_account()
        contract = bind_contract(w3, self.settings)
        log = logger.bind(operation=description, account=account)

        try:
            tx_hash = operation(contract).transact({"from": account})
        except Exception as exc:
            log.warning("transaction_rejected", error=str(exc), error_type=type(exc).__name__)
            raise SubmissionFailed(description, exc) from exc

        log.info("transaction_submitted", tx_hash=Web3.to_hex(tx_hash))
        try:
            receipt = w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.settings.TX_CONFIRMATION_TIMEOUT,
                poll_latency=self.settings.TX_POLL_INTERVAL,
            )
        except Exception as exc:
            log.warning("transaction_unconfirmed", tx_hash=Web3.to_hex(tx_hash), error=str(exc))
            raise SubmissionFailed(description, exc) from exc

        if receipt["status"] != 1:
            log.warning("transaction_reverted", tx_hash=Web3.to_hex(tx_hash))
            raise SubmissionFailed(
                description,
                message=f"{description} reverted in transaction {Web3.to_hex(tx_hash)}",
            )

        log.info(
            "transaction_confirmed",
            tx_hash=Web3.to_hex(tx_hash),
            block_number=receipt["blockNumber"],
        )
        return receipt
