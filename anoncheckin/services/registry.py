"""Meeting set reconstruction."""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Sequence, Set, Tuple

import structlog

from anoncheckin.core.config import Settings
from anoncheckin.core.constants import ZERO_ADDRESS
from anoncheckin.core.errors import LedgerError, RegistryUnavailable
from anoncheckin.models.meeting import Meeting, MeetingSnapshot, MeetingStatus, compute_duration
from anoncheckin.services.reader import ReadHandle, ResilientReader

logger = structlog.get_logger(__name__)


class InconsistentRecord(ValueError):
    """A detail record that cannot be trusted."""


class MeetingRegistry:
    """
    Rebuilds the full, ordered list of meetings from the ledger.

    Ids are assigned sequentially from 1, so a load scans ``[1, nextId)``.
    Each load returns a new ``MeetingSnapshot``; nothing from a previous load
    is reused or patched. A record that fails to load is replaced by a
    placeholder so the sequence has exactly one entry per id.

    Per-id reads run concurrently on a thread pool (``REGISTRY_MAX_WORKERS``).

    The only state kept between loads is the set of ids already seen ENDED:
    a later read claiming such a meeting is ACTIVE comes from a lagging node
    and is treated as inconsistent.
    """

    def __init__(self, settings: Settings, reader: ResilientReader, clock: Callable[[], float] = time.time):
        self.settings = settings
        self.reader = reader
        self._clock = clock
        self._ended_ids: Set[int] = set()
        self._ended_lock = threading.Lock()

    def load_all(self) -> MeetingSnapshot:
        """
        Load every meeting plus the ledger's active-id index.

        Returns an empty snapshot when no contract is deployed.

        Raises:
            RegistryUnavailable: If the ledger or ``nextMeetingId`` cannot be read
            NetworkRejected: If the wallet refused the required network
        """
        now = self._clock()
        try:
            handle = self.reader.get_read_handle()
        except LedgerError:
            raise
        except Exception as exc:
            logger.error("registry_unavailable", stage="connect", error=str(exc))
            raise RegistryUnavailable(f"Ledger unreachable: {exc}") from exc

        if handle is None:
            return MeetingSnapshot.empty(loaded_at=now)

        try:
            next_id = handle.next_meeting_id()
        except Exception as exc:
            logger.error("registry_unavailable", stage="nextMeetingId", error=str(exc))
            raise RegistryUnavailable(f"Could not read the number of meetings: {exc}") from exc

        meetings = self._load_meetings(handle, next_id, now)
        active_ids = self._load_active_ids(handle, meetings)

        logger.info(
            "meetings_loaded",
            total=len(meetings),
            active=len(active_ids),
            placeholders=sum(1 for m in meetings if m.placeholder),
        )
        return MeetingSnapshot(meetings=meetings, active_ids=active_ids, loaded_at=now)

    def _load_meetings(self, handle: ReadHandle, next_id: int, now: float) -> Tuple[Meeting, ...]:
        ids = range(1, next_id)
        if not ids:
            return ()
        workers = min(self.settings.REGISTRY_MAX_WORKERS, len(ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="meeting-load") as pool:
            # map() keeps id order whatever order the reads finish in
            return tuple(pool.map(lambda meeting_id: self._load_meeting(handle, meeting_id, now), ids))

    def _load_meeting(self, handle: ReadHandle, meeting_id: int, now: float) -> Meeting:
        try:
            details = handle.meeting_details(meeting_id)
            meeting = self._build_meeting(meeting_id, details, now)
        except Exception as exc:
            logger.warning(
                "meeting_record_invalid",
                meeting_id=meeting_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return Meeting.placeholder_for(meeting_id)
        return meeting

    def _build_meeting(self, meeting_id: int, details: Dict[str, Any], now: float) -> Meeting:
        creator = str(details["creator"])
        if creator.lower() == ZERO_ADDRESS:
            raise InconsistentRecord("meeting has no creator")

        try:
            status = MeetingStatus(int(details["status"]))
        except ValueError:
            raise InconsistentRecord(f"unknown status {details['status']!r}") from None

        with self._ended_lock:
            if status == MeetingStatus.ENDED:
                self._ended_ids.add(meeting_id)
            elif meeting_id in self._ended_ids:
                raise InconsistentRecord("meeting already observed ENDED is reported ACTIVE")

        start_time = int(details["startTime"])
        end_time = int(details["endTime"])
        return Meeting(
            id=meeting_id,
            creator=creator,
            title=str(details["title"]),
            start_time=start_time,
            end_time=end_time,
            max_participants=int(details["maxParticipants"]),
            participant_count=int(details["participantCount"]),
            status=status,
            duration=compute_duration(start_time, end_time, now),
        )

    def _load_active_ids(self, handle: ReadHandle, meetings: Sequence[Meeting]) -> Tuple[int, ...]:
        try:
            return tuple(handle.active_meeting_ids())
        except Exception as exc:
            logger.warning("active_index_unavailable", error=str(exc))
            return tuple(m.id for m in meetings if m.is_active)
