"""Pydantic schemas for request/response validation."""
from anoncheckin.schemas.checkin import CheckinRequest, ParticipantStatusResponse
from anoncheckin.schemas.common import (
    ErrorDetail,
    ErrorResponse,
    SuccessResponse,
    TransactionResponse,
)
from anoncheckin.schemas.meeting import (
    MeetingCreate,
    MeetingCreateResponse,
    MeetingDetail,
    MeetingEndRequest,
    MeetingListResponse,
    MeetingStats,
)
from anoncheckin.schemas.network import NetworkInfo

__all__ = [
    "CheckinRequest",
    "ParticipantStatusResponse",
    "MeetingCreate",
    "MeetingCreateResponse",
    "MeetingDetail",
    "MeetingEndRequest",
    "MeetingListResponse",
    "MeetingStats",
    "NetworkInfo",
    "SuccessResponse",
    "TransactionResponse",
    "ErrorResponse",
    "ErrorDetail",
]
