"""Meeting schemas."""
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from anoncheckin.core.constants import MAX_TITLE_LENGTH
from anoncheckin.core.sanitization import sanitize_title
from anoncheckin.models.meeting import Meeting, MeetingStatus


class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    max_participants: int = Field(..., gt=0)

    @field_validator("title")
    @classmethod
    def sanitize_title_field(cls, v: str) -> str:
        """Sanitize and validate the meeting title."""
        return sanitize_title(v)


class MeetingCreateResponse(BaseModel):
    meeting_id: int
    tx_hash: str


class MeetingEndRequest(BaseModel):
    confirm: bool = False


class MeetingDetail(BaseModel):
    id: int
    creator: str
    title: str
    start_time: int
    end_time: int
    max_participants: int
    participant_count: int
    status: str
    duration: Optional[int] = None
    is_full: bool = False
    placeholder: bool = False

    @classmethod
    def from_meeting(cls, meeting: Meeting) -> "MeetingDetail":
        return cls(
            id=meeting.id,
            creator=meeting.creator,
            title=meeting.title,
            start_time=meeting.start_time,
            end_time=meeting.end_time,
            max_participants=meeting.max_participants,
            participant_count=meeting.participant_count,
            status=MeetingStatus(meeting.status).name,
            duration=meeting.duration,
            is_full=meeting.is_full,
            placeholder=meeting.placeholder,
        )


class MeetingStats(BaseModel):
    total_meetings: int
    total_participants: int
    active_meetings: int
    ended_meetings: int


class MeetingListResponse(BaseModel):
    meetings: List[MeetingDetail]
    active_ids: List[int]
    stats: MeetingStats
    loaded_at: float
