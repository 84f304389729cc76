"""
In-memory registry of the CRNs still being monitored.
"""

import logging
from typing import Iterable, Optional

from seatfinder.models.schemas import CourseRecord

logger = logging.getLogger(__name__)


class CourseRegistry:
    """Ordered CRN -> CourseRecord mapping; insertion order is the poll order."""

    def __init__(self, crns: Iterable[str] = ()):
        self._courses: dict[str, CourseRecord] = {}
        for crn in crns:
            self.add(crn)

    def add(self, crn: str) -> bool:
        """Track a CRN. Adding a CRN twice is a no-op; returns False in that case."""
        if crn in self._courses:
            logger.debug(f"CRN {crn} already monitored, ignoring duplicate")
            return False
        self._courses[crn] = CourseRecord(crn=crn)
        return True

    def remove(self, crn: str) -> None:
        self._courses.pop(crn, None)

    def mark_notified(self, crn: str) -> None:
        """Record a successful notification; the record leaves the registry at once."""
        record = self._courses.get(crn)
        if record is None:
            return
        record.notified = True
        self.remove(crn)

    def list(self) -> list[str]:
        """Snapshot of tracked CRNs; later removals do not affect it."""
        return list(self._courses)

    def get(self, crn: str) -> Optional[CourseRecord]:
        return self._courses.get(crn)

    def count(self) -> int:
        return len(self._courses)

    def __len__(self) -> int:
        return len(self._courses)

    def __contains__(self, crn: object) -> bool:
        return crn in self._courses

    def __repr__(self) -> str:
        return f"CourseRegistry({self.list()!r})"
