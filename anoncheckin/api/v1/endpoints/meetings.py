"""Meeting endpoints.

Ledger errors raised here are turned into ``ErrorResponse`` bodies by the
handler registered in ``anoncheckin.main``.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from anoncheckin.api.deps import get_services
from anoncheckin.core.constants import MEETING_VIEWS, POPULAR_MEETINGS_LIMIT, VIEW_ALL
from anoncheckin.core.rate_limit import limiter, RATE_LIMITS
from anoncheckin.core.sanitization import normalize_address
from anoncheckin.schemas import (
    CheckinRequest,
    MeetingCreate,
    MeetingCreateResponse,
    MeetingDetail,
    MeetingEndRequest,
    MeetingListResponse,
    MeetingStats,
    ParticipantStatusResponse,
    TransactionResponse,
)
from anoncheckin.services import LedgerServices
from anoncheckin.services.submitter import receipt_tx_hash

router = APIRouter()


@router.get("", response_model=MeetingListResponse)
@limiter.limit(RATE_LIMITS["read"])
def list_meetings_endpoint(
    request: Request,
    view: str = Query(VIEW_ALL, pattern="^(" + "|".join(MEETING_VIEWS) + ")$"),
    creator: Optional[str] = Query(None),
    services: LedgerServices = Depends(get_services),
):
    """
    List meetings recorded on the ledger.

    Every call rebuilds the list from the ledger, so it reflects all
    confirmed writes. Meetings that could not be read appear as
    placeholders (``placeholder: true``, status ENDED) so ids have no gaps.

    Query:
        view: ``all`` (default), ``active`` or ``completed``
        creator: Only meetings created by this account

    Returns:
        MeetingListResponse with meetings in id order, the ledger's
        active-id index and aggregate stats over all meetings.
        An empty list when no contract is deployed.

    Errors:
        400 INVALID_INPUT for a malformed creator address
        503 REGISTRY_UNAVAILABLE when the ledger cannot be read
    """
    if creator is not None:
        creator = normalize_address(creator)
    snapshot = services.registry.load_all()
    meetings = snapshot.filter(view)
    if creator is not None:
        mine = {m.id for m in snapshot.created_by(creator)}
        meetings = tuple(m for m in meetings if m.id in mine)
    return MeetingListResponse(
        meetings=[MeetingDetail.from_meeting(m) for m in meetings],
        active_ids=list(snapshot.active_ids),
        stats=MeetingStats(**snapshot.stats()),
        loaded_at=snapshot.loaded_at,
    )


@router.get("/popular", response_model=List[MeetingDetail])
@limiter.limit(RATE_LIMITS["read"])
def popular_meetings_endpoint(
    request: Request,
    limit: int = Query(POPULAR_MEETINGS_LIMIT, ge=1, le=50),
    services: LedgerServices = Depends(get_services),
):
    """Active meetings with the most participants."""
    snapshot = services.registry.load_all()
    return [MeetingDetail.from_meeting(m) for m in snapshot.popular(limit)]


@router.get("/{meeting_id}", response_model=MeetingDetail)
@limiter.limit(RATE_LIMITS["read"])
def get_meeting_endpoint(
    request: Request,
    meeting_id: int,
    services: LedgerServices = Depends(get_services),
):
    """Single meeting; 404 for ids the ledger has not assigned."""
    meeting = services.registry.load_all().get(meeting_id)
    if meeting is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return MeetingDetail.from_meeting(meeting)


@router.get("/{meeting_id}/participants/{participant_id}", response_model=ParticipantStatusResponse)
@limiter.limit(RATE_LIMITS["read"])
def participant_status_endpoint(
    request: Request,
    meeting_id: int,
    participant_id: int,
    services: LedgerServices = Depends(get_services),
):
    """
    Whether a participant id has checked in.

    Errors:
        503 STATUS_UNAVAILABLE when the ledger cannot answer; clients show
        the status as unknown.
    """
    info = services.checkins.query_status(meeting_id, participant_id)
    return ParticipantStatusResponse(
        meeting_id=info.meeting_id,
        has_checked_in=info.has_checked_in,
        check_in_time=info.check_in_time,
    )


@router.post("", response_model=MeetingCreateResponse)
@limiter.limit(RATE_LIMITS["create_meeting"])
def create_meeting_endpoint(
    request: Request,
    meeting: MeetingCreate,
    services: LedgerServices = Depends(get_services),
):
    """
    Create a meeting from the server wallet's account.

    Blocks until the transaction is mined; the ledger assigns the id.

    Example:
        Request:
            POST /api/v1/meetings
            {"title": "Standup", "max_participants": 5}

        Response (200):
            {"meeting_id": 7, "tx_hash": "0x5c50..."}

        Response (403):
            {"success": false, "error": {"code": "NO_SIGNING_CAPABILITY", "message": "..."}}
    """
    meeting_id, tx_hash = services.meetings.create(meeting.title, meeting.max_participants)
    return MeetingCreateResponse(meeting_id=meeting_id, tx_hash=tx_hash)


@router.post("/{meeting_id}/checkins", response_model=TransactionResponse)
@limiter.limit(RATE_LIMITS["check_in"])
def checkin_endpoint(
    request: Request,
    meeting_id: int,
    checkin_request: CheckinRequest,
    services: LedgerServices = Depends(get_services),
):
    """
    Record attendance for a participant id.

    Errors (409, distinct codes, not worth retrying):
        ALREADY_CHECKED_IN, MEETING_FULL, MEETING_ENDED
    Errors (may be retried):
        502 SUBMISSION_FAILED, 409 NETWORK_REJECTED
    """
    receipt = services.checkins.check_in(meeting_id, checkin_request.participant_id)
    return TransactionResponse(message="Checked in", tx_hash=receipt_tx_hash(receipt))


@router.post("/{meeting_id}/end", response_model=TransactionResponse)
@limiter.limit(RATE_LIMITS["end_meeting"])
def end_meeting_endpoint(
    request: Request,
    meeting_id: int,
    end_request: MeetingEndRequest,
    services: LedgerServices = Depends(get_services),
):
    """
    End a meeting. The body must carry ``{"confirm": true}``.

    Errors:
        400 CONFIRMATION_REQUIRED, 409 ALREADY_ENDED, 403 NOT_MEETING_CREATOR
    """
    tx_hash = services.meetings.end(meeting_id, confirm=end_request.confirm)
    return TransactionResponse(message="Meeting ended", tx_hash=tx_hash)
