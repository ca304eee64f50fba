"""Published weekly availability lookups."""

from datetime import date

from medibook.core.clock import parse_hhmm, weekday_name
from medibook.core.exceptions import ValidationException


class AvailabilityService:
    """Answers whether a slot falls inside a clinician's published hours.

    Works on the doctor profile row already loaded by the caller; it holds no
    state and never touches the database.
    """

    @staticmethod
    def published_ranges(doctor: dict, day: date) -> list[tuple[int, int]]:
        """
        List the published ranges for the weekday of ``day``.

        Args:
            doctor: Doctor profile row with an ``availability`` list
            day: Calendar date

        Returns:
            ``(start, end)`` minute pairs; malformed entries are skipped
        """
        name = weekday_name(day).lower()
        ranges = []
        for entry in doctor.get("availability") or []:
            if str(entry.get("day", "")).lower() != name:
                continue
            try:
                start = parse_hhmm(entry.get("start_time", ""), "availability.start_time")
                end = parse_hhmm(entry.get("end_time", ""), "availability.end_time")
            except ValidationException:
                continue
            if start < end:
                ranges.append((start, end))
        return ranges

    @classmethod
    def is_within_published_hours(
        cls,
        doctor: dict,
        day: date,
        start_time: str,
        end_time: str,
    ) -> bool:
        """
        Check that ``[start_time, end_time)`` fits inside one published range.

        Returns False, never raises, when nothing is published for the day.
        """
        start = parse_hhmm(start_time, "start_time")
        end = parse_hhmm(end_time, "end_time")
        return any(
            range_start <= start and end <= range_end
            for range_start, range_end in cls.published_ranges(doctor, day)
        )
