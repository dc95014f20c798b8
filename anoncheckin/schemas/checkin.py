"""Check-in schemas."""
from typing import Optional, Union
from pydantic import BaseModel, field_validator

from anoncheckin.core.sanitization import validate_participant_id


class CheckinRequest(BaseModel):
    # Form input may arrive as a decimal string
    participant_id: Union[int, str]

    @field_validator("participant_id")
    @classmethod
    def validate_participant_id_field(cls, v) -> int:
        """Participant ids are positive integers."""
        return validate_participant_id(v)


class ParticipantStatusResponse(BaseModel):
    meeting_id: int
    has_checked_in: bool
    check_in_time: Optional[int] = None
