"""Domain models."""
from anoncheckin.models.meeting import (
    Meeting,
    MeetingSnapshot,
    MeetingStatus,
    ParticipantInfo,
    compute_duration,
)

__all__ = [
    "Meeting",
    "MeetingSnapshot",
    "MeetingStatus",
    "ParticipantInfo",
    "compute_duration",
]
