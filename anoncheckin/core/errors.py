"""Error taxonomy for the ledger access layer.

Every error carries a stable ``code`` (returned to API clients) and the HTTP
status the API layer answers with. Ledger rejections (full, ended, already
checked in, ...) are distinct classes so callers can tell them apart from
connectivity failures, which may be retried.
"""
from typing import Iterable, Optional, Tuple, Type


class LedgerError(Exception):
    """Base class for all errors surfaced by the ledger services."""

    code = "LEDGER_ERROR"
    status_code = 500

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__doc__ or self.code)
        self.message = message or (self.__doc__ or self.code).strip()


class InvalidInput(LedgerError, ValueError):
    """Malformed input."""

    code = "INVALID_INPUT"
    status_code = 400


class NetworkRejected(LedgerError):
    """The wallet declined to switch to or register the required network."""

    code = "NETWORK_REJECTED"
    status_code = 409


class ContractUnavailable(LedgerError):
    """No contract code is deployed at the configured address."""

    code = "CONTRACT_UNAVAILABLE"
    status_code = 503


class RegistryUnavailable(LedgerError):
    """The number of meetings on the ledger could not be determined."""

    code = "REGISTRY_UNAVAILABLE"
    status_code = 503


class StatusUnavailable(LedgerError):
    """Participant status could not be read from the ledger."""

    code = "STATUS_UNAVAILABLE"
    status_code = 503


class NoSigningCapability(LedgerError):
    """A state change was attempted without a signing wallet."""

    code = "NO_SIGNING_CAPABILITY"
    status_code = 403


class ConfirmationRequired(LedgerError):
    """Ending a meeting requires explicit confirmation."""

    code = "CONFIRMATION_REQUIRED"
    status_code = 400


class SubmissionFailed(LedgerError):
    """A state-changing transaction failed or was reverted."""

    code = "SUBMISSION_FAILED"
    status_code = 502

    def __init__(self, operation: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(message or f"{operation} failed: {cause}")

    @property
    def reason(self) -> str:
        """Revert reason (or error text) reported for the failed submission."""
        if self.cause is None:
            return self.message
        return revert_reason(self.cause)


class LedgerRejection(LedgerError):
    """The ledger refused the request for a business reason."""

    status_code = 409


class AlreadyCheckedIn(LedgerRejection):
    """The participant has already checked in to this meeting."""

    code = "ALREADY_CHECKED_IN"


class MeetingFull(LedgerRejection):
    """The meeting has reached its participant capacity."""

    code = "MEETING_FULL"


class MeetingEnded(LedgerRejection):
    """The meeting is no longer active."""

    code = "MEETING_ENDED"


class AlreadyEnded(LedgerRejection):
    """The meeting has already been ended."""

    code = "ALREADY_ENDED"


class NotMeetingCreator(LedgerRejection):
    """Only the meeting creator can end it."""

    code = "NOT_MEETING_CREATOR"
    status_code = 403


class WalletRequestError(Exception):
    """JSON-RPC error raised by a wallet provider (EIP-1193)."""

    def __init__(self, code: int, message: str, data=None):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data


def revert_reason(exc: BaseException) -> str:
    """Best-effort extraction of the revert reason text from a web3 error."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    if exc.args and isinstance(exc.args[0], dict):
        return str(exc.args[0].get("message", exc.args[0]))
    return str(exc)


# Substrings of revert reasons, matched case-insensitively
RejectionRules = Iterable[Tuple[Tuple[str, ...], Type[LedgerRejection]]]

CHECKIN_REJECTIONS: RejectionRules = (
    (("already checked", "already participant", "already registered"), AlreadyCheckedIn),
    (("full", "capacity", "max participants"), MeetingFull),
    (("not active", "ended", "inactive"), MeetingEnded),
)

END_REJECTIONS: RejectionRules = (
    (("only creator", "not creator", "not the creator", "not meeting creator"), NotMeetingCreator),
    (("already ended", "not active", "ended", "inactive"), AlreadyEnded),
)


def classify_rejection(error: SubmissionFailed, rules: RejectionRules) -> LedgerError:
    """Map a failed submission onto the matching ledger rejection, if any."""
    reason = error.reason.lower()
    for needles, rejection in rules:
        if any(needle in reason for needle in needles):
            return rejection(error.reason)
    return error
