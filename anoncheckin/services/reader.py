"""Read-only ledger access with bounded retry."""
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

import structlog
from web3 import Web3
from web3.exceptions import ContractLogicError

from anoncheckin.core.abi import CHECKIN_ABI
from anoncheckin.core.config import Settings
from anoncheckin.core.errors import ContractUnavailable, LedgerError
from anoncheckin.services.network import NetworkGate

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DETAIL_FIELDS = (
    "creator",
    "title",
    "startTime",
    "endTime",
    "maxParticipants",
    "participantCount",
    "status",
)


def retry(
    fn: Callable[[], T],
    attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    operation: str = "read",
) -> T:
    """
    Call ``fn`` up to ``attempts`` times with exponential backoff.

    The delay starts at ``base_delay`` and doubles after every failure. The
    last exception is re-raised once attempts are exhausted. Contract
    reverts and errors from our own taxonomy are not transient and are
    raised immediately.
    """
    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except (ContractLogicError, LedgerError):
            raise
        except Exception as exc:
            if attempt == attempts:
                logger.warning("read_failed", operation=operation, attempts=attempts, error=str(exc))
                raise
            logger.info(
                "read_retry",
                operation=operation,
                attempt=attempt,
                delay_seconds=delay,
                error=str(exc),
            )
            sleep(delay)
            delay *= 2
    raise AssertionError("unreachable")


def bind_contract(w3: Web3, settings: Settings):
    """Contract object for the configured address on ``w3``."""
    return w3.eth.contract(address=Web3.to_checksum_address(settings.CONTRACT_ADDRESS), abi=CHECKIN_ABI)


class ReadHandle:
    """
    Verified accessor for the ledger's read-only functions.

    Every call is retried like the existence check; failures after the last
    attempt propagate so callers choose their own fallback.
    """

    def __init__(self, contract, call: Callable[[Callable[[], Any], str], Any]):
        self.contract = contract
        self._call = call

    def next_meeting_id(self) -> int:
        return int(self._call(lambda: self.contract.functions.nextMeetingId().call(), "nextMeetingId"))

    def active_meeting_ids(self) -> List[int]:
        ids = self._call(lambda: self.contract.functions.getActiveMeetings().call(), "getActiveMeetings")
        return [int(meeting_id) for meeting_id in ids]

    def meeting_details(self, meeting_id: int) -> Dict[str, Any]:
        result = self._call(
            lambda: self.contract.functions.getMeetingDetails(meeting_id).call(),
            "getMeetingDetails",
        )
        return details_from_result(result)

    def is_participant(self, meeting_id: int, participant_id: int) -> bool:
        return bool(self._call(
            lambda: self.contract.functions.isParticipant(meeting_id, participant_id).call(),
            "isParticipant",
        ))


def details_from_result(result: Any) -> Dict[str, Any]:
    """Normalise a ``getMeetingDetails`` result (tuple or mapping) to a dict."""
    if hasattr(result, "keys"):
        return {field: result[field] for field in DETAIL_FIELDS}
    values = list(result)
    if len(values) != len(DETAIL_FIELDS):
        raise ValueError(f"getMeetingDetails returned {len(values)} values, expected {len(DETAIL_FIELDS)}")
    return dict(zip(DETAIL_FIELDS, values))


class ResilientReader:
    """Produces read handles once the contract is known to be deployed."""

    def __init__(self, settings: Settings, gate: NetworkGate, sleep: Callable[[float], None] = time.sleep):
        self.settings = settings
        self.gate = gate
        self._sleep = sleep

    def _retry(self, fn: Callable[[], T], operation: str) -> T:
        return retry(
            fn,
            attempts=self.settings.READ_RETRY_ATTEMPTS,
            base_delay=self.settings.READ_RETRY_BASE_DELAY,
            sleep=self._sleep,
            operation=operation,
        )

    def get_read_handle(self) -> Optional[ReadHandle]:
        """
        Return a verified read handle, or ``None`` when no contract is deployed.

        ``None`` is the normal answer for an unconfigured address or an address
        without code; callers render an empty state. Connectivity errors that
        persist through every retry attempt propagate.
        """
        if not self.settings.CONTRACT_ADDRESS:
            logger.warning("contract_address_not_configured")
            return None

        w3 = self.gate.resolve_provider()
        address = Web3.to_checksum_address(self.settings.CONTRACT_ADDRESS)
        code = self._retry(lambda: w3.eth.get_code(address), "getCode")
        if not code:
            logger.warning("contract_not_deployed", address=address)
            return None

        return ReadHandle(bind_contract(w3, self.settings), self._retry)

    def require_read_handle(self) -> ReadHandle:
        """Like ``get_read_handle`` but raises ``ContractUnavailable``."""
        handle = self.get_read_handle()
        if handle is None:
            raise ContractUnavailable(f"No contract deployed at {self.settings.CONTRACT_ADDRESS}")
        return handle
