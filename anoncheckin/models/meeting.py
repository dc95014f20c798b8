"""Meeting domain model."""
from enum import IntEnum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from anoncheckin.core.constants import (
    PLACEHOLDER_TITLE,
    POPULAR_MEETINGS_LIMIT,
    VIEW_ACTIVE,
    VIEW_ALL,
    VIEW_COMPLETED,
    ZERO_ADDRESS,
)
from anoncheckin.core.errors import InvalidInput


class MeetingStatus(IntEnum):
    """On-chain meeting state. ACTIVE -> ENDED only."""

    ACTIVE = 0
    ENDED = 1


class Meeting(BaseModel):
    """A meeting as reconstructed from the ledger during one load."""

    model_config = ConfigDict(frozen=True)

    id: int
    creator: str
    title: str
    start_time: int
    end_time: int
    max_participants: int
    participant_count: int
    status: MeetingStatus
    # Derived on every load, never read from the ledger
    duration: Optional[int] = None
    placeholder: bool = False

    @classmethod
    def placeholder_for(cls, meeting_id: int) -> "Meeting":
        """Record standing in for a meeting that could not be loaded."""
        return cls(
            id=meeting_id,
            creator=ZERO_ADDRESS,
            title=PLACEHOLDER_TITLE,
            start_time=0,
            end_time=0,
            max_participants=0,
            participant_count=0,
            status=MeetingStatus.ENDED,
            placeholder=True,
        )

    @property
    def is_active(self) -> bool:
        return self.status == MeetingStatus.ACTIVE

    @property
    def is_full(self) -> bool:
        return not self.placeholder and self.participant_count >= self.max_participants

    def is_created_by(self, address: Optional[str]) -> bool:
        return bool(address) and address.lower() == self.creator.lower()


def compute_duration(start_time: int, end_time: int, now: float) -> int:
    """Seconds the meeting lasted, or has lasted so far while still open."""
    if end_time > 0:
        return end_time - start_time
    return int(now) - start_time


class ParticipantInfo(BaseModel):
    """Check-in state of one participant id in one meeting."""

    model_config = ConfigDict(frozen=True)

    meeting_id: int
    participant_id: int
    has_checked_in: bool
    # The ledger does not expose check-in times
    check_in_time: Optional[int] = None


class MeetingSnapshot(BaseModel):
    """
    Immutable result of one ``MeetingRegistry.load_all()`` call.

    Meetings are ordered by id ascending, one record per id in
    ``[1, nextId)``. A snapshot is never updated; reload to observe changes.
    """

    model_config = ConfigDict(frozen=True)

    meetings: Tuple[Meeting, ...] = ()
    active_ids: Tuple[int, ...] = ()
    loaded_at: float = 0.0

    @classmethod
    def empty(cls, loaded_at: float = 0.0) -> "MeetingSnapshot":
        return cls(loaded_at=loaded_at)

    def __len__(self) -> int:
        return len(self.meetings)

    def get(self, meeting_id: int) -> Optional[Meeting]:
        # ids are contiguous from 1
        if 1 <= meeting_id <= len(self.meetings):
            return self.meetings[meeting_id - 1]
        return None

    def filter(self, view: str = VIEW_ALL) -> Tuple[Meeting, ...]:
        """Meetings shown under one of the dashboard tabs."""
        if view == VIEW_ALL:
            return self.meetings
        if view == VIEW_ACTIVE:
            return tuple(m for m in self.meetings if m.is_active)
        if view == VIEW_COMPLETED:
            return tuple(m for m in self.meetings if not m.is_active)
        raise InvalidInput(f"Unknown meeting view: {view!r}")

    def popular(self, limit: int = POPULAR_MEETINGS_LIMIT) -> Tuple[Meeting, ...]:
        """Active meetings with the most participants first."""
        active = sorted(
            (m for m in self.meetings if m.is_active),
            key=lambda m: m.participant_count,
            reverse=True,
        )
        return tuple(active[:limit])

    def created_by(self, address: str) -> Tuple[Meeting, ...]:
        return tuple(m for m in self.meetings if m.is_created_by(address))

    def stats(self) -> Dict[str, int]:
        active = sum(1 for m in self.meetings if m.is_active)
        return {
            "total_meetings": len(self.meetings),
            "total_participants": sum(m.participant_count for m in self.meetings),
            "active_meetings": active,
            "ended_meetings": len(self.meetings) - active,
        }
