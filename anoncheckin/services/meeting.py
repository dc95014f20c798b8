"""Meeting creation and termination."""
from typing import Any, Tuple

import structlog
from web3.logs import DISCARD

from anoncheckin.core.errors import (
    END_REJECTIONS,
    ConfirmationRequired,
    SubmissionFailed,
    classify_rejection,
)
from anoncheckin.core.sanitization import (
    sanitize_title,
    validate_max_participants,
    validate_meeting_id,
)
from anoncheckin.services.reader import ReadHandle, ResilientReader
from anoncheckin.services.submitter import TransactionSubmitter, receipt_tx_hash

logger = structlog.get_logger(__name__)

# How far back from nextMeetingId to look for our meeting when the
# MeetingCreated event is missing from the receipt
ID_LOOKBACK = 16


class MeetingLifecycleController:
    """
    Creates and ends meetings.

    Both operations wait for the ledger to confirm; callers reload the
    registry afterwards to see the change.
    """

    def __init__(self, reader: ResilientReader, submitter: TransactionSubmitter):
        self.reader = reader
        self.submitter = submitter

    def create(self, title: str, max_participants: Any) -> Tuple[int, str]:
        """
        Create a meeting.

        Returns:
            (meeting_id, tx_hash) once the creation is mined. The id is
            assigned by the ledger and only known after confirmation.

        Raises:
            InvalidInput: Empty title or capacity below 1
            NoSigningCapability: No wallet to sign with
            SubmissionFailed: The transaction failed
        """
        title = sanitize_title(title)
        max_participants = validate_max_participants(max_participants)
        self.submitter.require_signer()

        description = "createMeeting"
        receipt = self.submitter.submit(
            lambda contract: contract.functions.createMeeting(title, max_participants),
            description,
        )
        meeting_id = self._created_meeting_id(receipt, title, description)

        logger.info("meeting_created", meeting_id=meeting_id, max_participants=max_participants)
        return meeting_id, receipt_tx_hash(receipt)

    def end(self, meeting_id: Any, confirm: bool = False) -> str:
        """
        End an ACTIVE meeting, freezing its participant count.

        Args:
            meeting_id: Meeting to end
            confirm: Must be True; ending cannot be undone

        Returns:
            Hash of the confirmed transaction

        Raises:
            ConfirmationRequired: ``confirm`` was not given
            NoSigningCapability: No wallet to sign with
            AlreadyEnded: The meeting was already ended
            NotMeetingCreator: The active account did not create the meeting
            SubmissionFailed: Any other submission failure
        """
        meeting_id = validate_meeting_id(meeting_id)
        if confirm is not True:
            raise ConfirmationRequired("Ending a meeting is permanent and must be confirmed")
        self.submitter.require_signer()

        try:
            receipt = self.submitter.submit(
                lambda contract: contract.functions.endMeeting(meeting_id),
                f"endMeeting({meeting_id})",
            )
        except SubmissionFailed as exc:
            rejection = classify_rejection(exc, END_REJECTIONS)
            if rejection is exc:
                raise
            logger.info("meeting_end_rejected", meeting_id=meeting_id, reason=rejection.code)
            raise rejection from exc

        logger.info("meeting_ended", meeting_id=meeting_id)
        return receipt_tx_hash(receipt)

    def _created_meeting_id(self, receipt, title: str, description: str) -> int:
        # The meeting exists from here on; failures must carry the tx hash
        try:
            handle = self.reader.require_read_handle()
            events = handle.contract.events.MeetingCreated().process_receipt(receipt, errors=DISCARD)
            for event in events:
                return int(event["args"]["meetingId"])
            meeting_id = self._find_created_meeting(handle, receipt, title)
        except Exception as exc:
            logger.warning("meeting_id_unresolved", tx_hash=receipt_tx_hash(receipt), error=str(exc))
            raise SubmissionFailed(
                description,
                exc,
                message=f"Meeting created in {receipt_tx_hash(receipt)} but its id could not be read: {exc}",
            ) from exc

        if meeting_id is None:
            raise SubmissionFailed(
                description,
                message=f"Meeting created in {receipt_tx_hash(receipt)} but its id could not be determined",
            )
        return meeting_id

    def _find_created_meeting(self, handle: ReadHandle, receipt, title: str):
        creator = str(receipt["from"]).lower()
        next_id = int(handle.contract.functions.nextMeetingId().call(block_identifier=receipt["blockNumber"]))
        for meeting_id in range(next_id - 1, max(0, next_id - 1 - ID_LOOKBACK), -1):
            details = handle.meeting_details(meeting_id)
            if str(details["creator"]).lower() == creator and details["title"] == title:
                return meeting_id
        return None
