"""
Poll cycle: one pass over the monitored CRNs on the course list page.
Reads seat counts, sends availability alerts and prunes satisfied CRNs.
"""

import asyncio
import logging
from typing import Callable, Optional

import logfire

from seatfinder.exceptions import ElementNotFoundError, StatusParseError
from seatfinder.models.schemas import CycleReport, StatusReading
from seatfinder.services.notification import NotificationService
from seatfinder.services.page_session import PageSession
from seatfinder.services.registry import CourseRegistry

logger = logging.getLogger(__name__)


class CourseListSelectors:
    """Element selectors of the course list page."""

    TERM_FILTER = "#termFilter"
    CAMPUS_DROPDOWN = ".ms-choice"
    BODY = "body"
    ADVANCED_LINK = "#advancedLink"
    CRN_INPUT = "#crnNumber"
    SEARCH_BUTTON = "#courseSearch"

    @staticmethod
    def status(crn: str) -> str:
        return f"#statusMessage{crn}"


class PollCycle:
    """Checks every monitored CRN once and notifies on open seats."""

    def __init__(
        self,
        registry: CourseRegistry,
        notifier: NotificationService,
        recipient: str,
        campus: str = "Oxford",
        filter_timeout_ms: int = 60_000,
        status_timeout_ms: int = 7_000,
        settle_delay: float = 0.5,
    ):
        """
        Initialize poll cycle.

        Args:
            registry: CRNs still being monitored; satisfied CRNs are removed from it
            notifier: Email service used for availability alerts
            recipient: Address that receives the alerts
            campus: Campus filter label to tick on the course list page
            filter_timeout_ms: Wait ceiling for filter and search elements
            status_timeout_ms: Wait ceiling for a CRN's status element
            settle_delay: Pause after opening the campus dropdown (in seconds)
        """
        self.registry = registry
        self.notifier = notifier
        self.recipient = recipient
        self.campus = campus
        self.filter_timeout_ms = filter_timeout_ms
        self.status_timeout_ms = status_timeout_ms
        self.settle_delay = settle_delay

    async def apply_filters(self, session: PageSession, term_code: str) -> None:
        """Select the term and campus and open the advanced search form."""
        await session.wait_for_element(CourseListSelectors.TERM_FILTER, self.filter_timeout_ms)
        await session.select_option(CourseListSelectors.TERM_FILTER, term_code)

        await session.wait_for_element(CourseListSelectors.CAMPUS_DROPDOWN, self.filter_timeout_ms)
        await session.click(CourseListSelectors.CAMPUS_DROPDOWN)
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)
        if not await session.check_option_by_label(self.campus):
            logger.warning(f"Campus filter {self.campus!r} not found, searching all campuses")
        await session.click(CourseListSelectors.BODY)
        await session.click(CourseListSelectors.ADVANCED_LINK)

    async def read_status(self, session: PageSession, crn: str) -> StatusReading:
        """
        Search for one CRN and read its enrollment counts.

        Raises:
            ElementNotFoundError: If the status element does not appear in time
            StatusParseError: If the status text is not '<current>/<capacity>'
        """
        await session.wait_for_element(CourseListSelectors.CRN_INPUT, self.filter_timeout_ms)
        await session.set_value(CourseListSelectors.CRN_INPUT, crn)
        await session.click(CourseListSelectors.SEARCH_BUTTON)

        status_selector = CourseListSelectors.status(crn)
        await session.wait_for_element(status_selector, self.status_timeout_ms)
        text = await session.read_text(status_selector)
        return StatusReading.parse(text)

    async def run(
        self,
        crns: list[str],
        session: PageSession,
        term_code: str,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> CycleReport:
        """
        Check each CRN of the snapshot in order.

        Filter failures propagate to the caller. Failures for a single CRN are
        logged and leave that CRN monitored for the next cycle.

        Args:
            crns: Snapshot of the registry taken at cycle start
            session: Page already navigated to the course list
            term_code: 6-digit term code selected in the term filter
            should_stop: Checked before each CRN; True ends the cycle early

        Returns:
            CycleReport summarising the pass
        """
        report = CycleReport()
        await self.apply_filters(session, term_code)

        for crn in crns:
            if should_stop is not None and should_stop():
                logger.info("Stop requested, ending poll cycle early")
                break
            if crn not in self.registry:
                continue

            report.checked.append(crn)
            try:
                reading = await self.read_status(session, crn)
            except ElementNotFoundError as e:
                logger.error(f"CRN {crn}: could not fetch status - {e}")
                report.failed.append(crn)
                continue
            except StatusParseError as e:
                logger.error(f"CRN {crn}: {e}")
                report.failed.append(crn)
                continue
            except Exception as e:
                logger.error(f"CRN {crn}: page error while searching - {e}")
                report.failed.append(crn)
                continue

            report.readings[crn] = str(reading)
            logger.info(f"{crn}: {reading}")

            if not reading.is_available:
                continue

            try:
                await self._notify(crn, reading, report)
            except Exception as e:
                logger.error(f"CRN {crn}: notification error - {e}")
                report.failed.append(crn)

        return report

    async def _notify(self, crn: str, reading: StatusReading, report: CycleReport) -> None:
        with logfire.span("sending_notification", crn=crn, open_seats=reading.open_seats):
            result = await self.notifier.send_availability_alert(
                to_address=self.recipient,
                crn=crn,
                reading=reading,
            )

        if result.success:
            self.registry.mark_notified(crn)
            report.notified.append(crn)
            logger.info(f"Notification sent for CRN {crn}, no longer monitoring it")
        else:
            report.failed.append(crn)
            logger.error(
                f"Notification for CRN {crn} failed ({result.error}); "
                "will retry on the next cycle"
            )
