"""Time slot generation - meeting times that fall in working hours for every participant."""
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from proactive_scheduler.config import settings
from proactive_scheduler.proactive.errors import SuggestionAlreadyResolvedError
from proactive_scheduler.proactive.types import TimeSlot, Urgency
from proactive_scheduler.services.profiles import ProfileStore
from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)


def _load_zone(name: str) -> Optional[ZoneInfo]:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def format_local_time(instant: datetime, zone: ZoneInfo) -> str:
    """Render e.g. ``Tue, Mar 4, 9:00 AM PST`` for the given zone."""
    local = instant.astimezone(zone)
    hour = local.hour % 12 or 12
    return f"{local:%a, %b} {local.day}, {hour}:{local:%M} {local:%p} {local.tzname()}"


class TimeSlotGenerator:
    """
    Finds meeting times that suit every participant.

    Candidates are a fixed grid: ``search_days`` days from the urgency offset
    times the anchor hours of the reference zone (7 x 7 = 49 by default), so
    the search size never depends on the number of participants. A candidate
    survives only if its start lands inside working hours in every
    participant's zone; the earliest survivors win.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        suggestion_store=None,
        default_timezone: Optional[str] = None,
        reference_timezone: Optional[str] = None,
        working_hours: Optional[Tuple[int, int]] = None,
        anchor_hours: Optional[Sequence[int]] = None,
        search_days: Optional[int] = None,
        max_slots: Optional[int] = None,
        default_duration: Optional[int] = None,
        lookup_workers: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.profile_store = profile_store
        self.suggestion_store = suggestion_store
        self.default_timezone = default_timezone or settings.DEFAULT_TIMEZONE
        self.reference_timezone = reference_timezone or settings.SLOT_REFERENCE_TIMEZONE
        self.working_hours = working_hours or (settings.WORKING_HOURS_START, settings.WORKING_HOURS_END)
        self.anchor_hours = sorted(set(anchor_hours or settings.SLOT_ANCHOR_HOURS))
        self.search_days = search_days or settings.SLOT_SEARCH_DAYS
        self.max_slots = max_slots or settings.MAX_SUGGESTED_SLOTS
        self.default_duration = default_duration or settings.DEFAULT_MEETING_DURATION
        self.lookup_workers = lookup_workers or settings.TIMEZONE_LOOKUP_WORKERS
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        if _load_zone(self.default_timezone) is None:
            raise ValueError(f"Invalid default timezone: {self.default_timezone}")
        if _load_zone(self.reference_timezone) is None:
            raise ValueError(f"Invalid reference timezone: {self.reference_timezone}")
        start, end = self.working_hours
        if not 0 <= start < end <= 24:
            raise ValueError(f"Invalid working hours: {self.working_hours}")

    # Timezone resolution

    def resolve_timezone(self, user_id: str) -> str:
        """User's zone from their profile, or the default zone."""
        try:
            zone_name = self.profile_store.get_timezone(user_id)
        except Exception as e:
            logger.warning(f"Failed to get timezone for user {user_id}: {e}; using {self.default_timezone}")
            return self.default_timezone

        if not zone_name:
            return self.default_timezone
        if _load_zone(zone_name) is None:
            logger.warning(f"Unknown timezone {zone_name!r} for user {user_id}; using {self.default_timezone}")
            return self.default_timezone
        return zone_name

    def resolve_timezones(self, participant_ids: Iterable[str]) -> Dict[str, str]:
        """Map each participant to a zone; lookups run in parallel."""
        participant_ids = list(dict.fromkeys(participant_ids))
        if not participant_ids:
            return {}

        resolved: Dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=min(len(participant_ids), self.lookup_workers)) as executor:
            future_to_user = {
                executor.submit(self.resolve_timezone, user_id): user_id
                for user_id in participant_ids
            }
            for future in as_completed(future_to_user):
                user_id = future_to_user[future]
                try:
                    resolved[user_id] = future.result()
                except Exception as e:
                    logger.warning(f"Timezone lookup crashed for {user_id}: {e}")
                    resolved[user_id] = self.default_timezone

        return {user_id: resolved[user_id] for user_id in participant_ids}

    # Candidate search

    @staticmethod
    def days_out_for(urgency: Union[Urgency, str, None]) -> int:
        """Urgent meetings start the search tomorrow, everything else the day after."""
        try:
            return 1 if Urgency.parse(urgency) is Urgency.URGENT else 2
        except ValueError:
            return 2

    def candidate_starts(self, days_out: int, now: Optional[datetime] = None) -> List[datetime]:
        """Anchor hours in the reference zone for each day of the search window, as UTC instants."""
        now = now or self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        reference = ZoneInfo(self.reference_timezone)
        today = now.astimezone(reference).date()

        candidates = set()
        for day in range(days_out, days_out + self.search_days):
            date = today + timedelta(days=day)
            for hour in self.anchor_hours:
                local = datetime.combine(date, time(hour), tzinfo=reference)
                candidates.add(local.astimezone(timezone.utc))
        return sorted(candidates)

    def is_working_hours(self, instant: datetime, zone_name: str) -> bool:
        start, end = self.working_hours
        local = instant.astimezone(ZoneInfo(zone_name))
        return start <= local.hour < end

    def filter_feasible(self, candidates: Iterable[datetime], participant_timezones: Dict[str, str]) -> List[datetime]:
        """Keep candidates inside working hours for all zones."""
        zones = set(participant_timezones.values())
        return [
            candidate for candidate in candidates
            if all(self.is_working_hours(candidate, zone) for zone in zones)
        ]

    def format_time_slot(self, start: datetime, duration: int, participant_timezones: Dict[str, str]) -> TimeSlot:
        displays = {}
        for participant_id, zone_name in participant_timezones.items():
            displays[participant_id] = format_local_time(start, ZoneInfo(zone_name))
        return TimeSlot(start_time=start, duration=duration, timezone_displays=displays)

    def generate_time_slots(
        self,
        participant_ids: Iterable[str],
        duration: Optional[int] = None,
        urgency: Union[Urgency, str, None] = Urgency.FLEXIBLE,
        now: Optional[datetime] = None
    ) -> List[TimeSlot]:
        """Up to ``max_slots`` feasible slots, earliest first.

        An empty list means no common working-hours time exists in the
        search window.
        """
        duration = self.default_duration if duration is None else duration
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise ValueError(f"Invalid meeting duration: {duration!r}")

        participant_timezones = self.resolve_timezones(participant_ids)
        if not participant_timezones:
            logger.warning("No participants to schedule")
            return []

        days_out = self.days_out_for(urgency)
        logger.info(
            f"Generating time slots for {len(participant_timezones)} participants "
            f"(duration {duration} min, starting {days_out} days out)"
        )

        candidates = self.candidate_starts(days_out, now=now)
        valid = self.filter_feasible(candidates, participant_timezones)
        logger.info(f"{len(valid)} of {len(candidates)} candidate slots work for all timezones")

        if not valid:
            logger.warning(f"No common working-hours slot for zones {sorted(set(participant_timezones.values()))}")
            return []

        return [
            self.format_time_slot(start, duration, participant_timezones)
            for start in valid[:self.max_slots]
        ]

    def generate_for_suggestion(self, suggestion_id: str, duration: Optional[int] = None) -> List[TimeSlot]:
        """Compute slots for a stored suggestion and attach them to it."""
        if self.suggestion_store is None:
            raise RuntimeError("TimeSlotGenerator has no suggestion store")

        suggestion = self.suggestion_store.get(suggestion_id)
        if suggestion.is_terminal:
            raise SuggestionAlreadyResolvedError(
                suggestion_id, f"Suggestion is already {suggestion.status.value}; its time slots are final"
            )
        time_slots = self.generate_time_slots(
            suggestion.participant_ids,
            duration=duration,
            urgency=suggestion.urgency
        )
        self.suggestion_store.attach_time_slots(suggestion_id, time_slots)
        return time_slots
