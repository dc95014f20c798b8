"""Check-in business logic."""
from typing import Any

import structlog

from anoncheckin.core.errors import (
    CHECKIN_REJECTIONS,
    AlreadyCheckedIn,
    LedgerError,
    NetworkRejected,
    StatusUnavailable,
    SubmissionFailed,
    classify_rejection,
)
from anoncheckin.core.sanitization import validate_meeting_id, validate_participant_id
from anoncheckin.models.meeting import ParticipantInfo
from anoncheckin.services.reader import ResilientReader
from anoncheckin.services.submitter import TransactionSubmitter

logger = structlog.get_logger(__name__)


class CheckInCoordinator:
    """
    Records attendance for a participant id, at most once per meeting.

    Capacity and meeting state are enforced by the ledger; its rejections are
    surfaced as ``MeetingFull`` / ``MeetingEnded`` / ``AlreadyCheckedIn``.
    After a successful check-in the caller reloads the registry.
    """

    def __init__(self, reader: ResilientReader, submitter: TransactionSubmitter):
        self.reader = reader
        self.submitter = submitter

    def query_status(self, meeting_id: Any, participant_id: Any) -> ParticipantInfo:
        """
        Whether ``participant_id`` has checked in to ``meeting_id``.

        Raises:
            InvalidInput: If either id is malformed
            NetworkRejected: If the wallet declined the required network
            StatusUnavailable: If the ledger cannot answer; callers show
                "unknown" rather than "not checked in"
        """
        meeting_id = validate_meeting_id(meeting_id)
        participant_id = validate_participant_id(participant_id)

        try:
            handle = self.reader.get_read_handle()
            if handle is None:
                raise StatusUnavailable("Ledger contract is not available")
            checked_in = handle.is_participant(meeting_id, participant_id)
        except (StatusUnavailable, NetworkRejected):
            raise
        except Exception as exc:
            logger.warning(
                "participant_status_unavailable",
                meeting_id=meeting_id,
                error=str(exc),
            )
            raise StatusUnavailable(f"Could not read participant status: {exc}") from exc

        return ParticipantInfo(
            meeting_id=meeting_id,
            participant_id=participant_id,
            has_checked_in=checked_in,
        )

    def check_in(self, meeting_id: Any, participant_id: Any):
        """
        Check ``participant_id`` in to ``meeting_id`` and wait for confirmation.

        Returns:
            The confirmed transaction receipt

        Raises:
            InvalidInput: Malformed ids
            NoSigningCapability: No wallet to sign with
            NetworkRejected: The wallet declined the required network
            AlreadyCheckedIn: Participant already recorded (never counted twice)
            MeetingFull / MeetingEnded: Ledger rejected the check-in
            SubmissionFailed: Any other submission failure
        """
        meeting_id = validate_meeting_id(meeting_id)
        participant_id = validate_participant_id(participant_id)
        self.submitter.require_signer()

        if self._already_checked_in(meeting_id, participant_id):
            logger.info("checkin_duplicate", meeting_id=meeting_id)
            raise AlreadyCheckedIn(f"Participant already checked in to meeting {meeting_id}")

        try:
            receipt = self.submitter.submit(
                lambda contract: contract.functions.checkIn(meeting_id, participant_id),
                f"checkIn({meeting_id})",
            )
        except SubmissionFailed as exc:
            rejection = classify_rejection(exc, CHECKIN_REJECTIONS)
            if rejection is exc:
                raise
            logger.info("checkin_rejected", meeting_id=meeting_id, reason=rejection.code)
            raise rejection from exc

        logger.info("checkin_confirmed", meeting_id=meeting_id)
        return receipt

    def _already_checked_in(self, meeting_id: int, participant_id: int) -> bool:
        # Unknown status falls through; the ledger rejects duplicates itself
        try:
            return self.query_status(meeting_id, participant_id).has_checked_in
        except NetworkRejected:
            raise
        except LedgerError as exc:
            logger.info("checkin_precheck_skipped", meeting_id=meeting_id, reason=exc.code)
            return False
