"""
Main runner for Seat Finder.
Monitor loop that polls the course list until every CRN has open seats.
"""

import asyncio
import logging
import signal
import sys
from typing import Callable, Optional

import logfire
import structlog

from seatfinder.config import Settings, get_settings
from seatfinder.exceptions import NavigationError, SessionError
from seatfinder.models.schemas import CycleReport, MonitorPlan, MonitorState, SessionState
from seatfinder.services.connectivity import ConnectivityProbe
from seatfinder.services.notification import NotificationService
from seatfinder.services.page_session import PageSession, PlaywrightPageSession
from seatfinder.services.poll_cycle import PollCycle
from seatfinder.services.registry import CourseRegistry

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if sys.stdout.isatty() is False
        else structlog.dev.ConsoleRenderer(colors=True),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    """Route stdlib and structlog output to stdout at the configured level."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(message)s",
        stream=sys.stdout,
    )


class SeatMonitor:
    """Owns the registry, the page session and the polling cadence for one run."""

    def __init__(
        self,
        plan: MonitorPlan,
        settings: Optional[Settings] = None,
        probe: Optional[ConnectivityProbe] = None,
        notifier: Optional[NotificationService] = None,
        session_factory: Optional[Callable[[], PageSession]] = None,
    ):
        """
        Initialize the monitor.

        Args:
            plan: Validated setup: recipient address, term code and CRNs
            settings: Runtime settings, read from the environment when omitted
            probe: Connectivity probe gating every poll cycle
            notifier: Email service for confirmation and availability alerts
            session_factory: Builds the page session used for the whole run
        """
        self.settings = settings or get_settings()
        self.email = plan.email
        self.registry = CourseRegistry(plan.crns)
        self.session_state = SessionState(term_code=plan.term_code)
        self.probe = probe or ConnectivityProbe(
            host=self.settings.connectivity_host,
            timeout=self.settings.connectivity_timeout,
        )
        self.notifier = notifier or NotificationService(
            host=self.settings.smtp_host,
            port=self.settings.smtp_port,
            username=self.settings.smtp_user or plan.email,
            password=self.settings.smtp_password,
            timeout=self.settings.smtp_timeout,
            max_retries=self.settings.notification_max_retries,
            registration_url=self.settings.course_list_url,
        )
        self.session_factory = session_factory or self._default_session_factory
        self.poll_cycle = PollCycle(
            registry=self.registry,
            notifier=self.notifier,
            recipient=plan.email,
            campus=self.settings.campus,
            filter_timeout_ms=self.settings.filter_timeout_ms,
            status_timeout_ms=self.settings.status_timeout_ms,
        )
        self.state = MonitorState.INIT
        self.cycles_run = 0
        self.last_report: Optional[CycleReport] = None
        self._stop_event = asyncio.Event()

    def _default_session_factory(self) -> PageSession:
        return PlaywrightPageSession(
            headless=self.settings.headless,
            slow_mo_ms=self.settings.slow_mo_ms,
            navigation_timeout_ms=self.settings.navigation_timeout_ms,
        )

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        """Ask the loop to finish at its next suspension point."""
        if not self.stop_requested:
            logger.info("Stop requested", state=self.state.value)
        self._stop_event.set()

    def _transition(self, state: MonitorState) -> None:
        if state != self.state:
            logger.info("State transition", old=self.state.value, new=state.value)
        self.state = state

    async def _pause(self, seconds: float) -> bool:
        """Sleep for seconds unless stopped first. Returns True if a stop was requested."""
        if self.stop_requested:
            return True
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def send_confirmation(self) -> None:
        """Send the start-of-run email once; a failure is logged and monitoring continues."""
        if self.session_state.confirmation_sent:
            return

        try:
            result = await self.notifier.send_confirmation(
                to_address=self.email,
                crns=self.registry.list(),
                interval_seconds=self.settings.check_interval_seconds,
            )
        except Exception as e:
            logger.warning(
                "Could not send confirmation email, monitoring anyway",
                recipient=self.email,
                error=str(e),
            )
            return

        if result.success:
            self.session_state.confirmation_sent = True
            logger.info("Confirmation email sent", recipient=self.email)
        else:
            logger.warning(
                "Could not send confirmation email, monitoring anyway",
                recipient=self.email,
                error=result.error,
            )

    async def navigate_with_retry(self, session: PageSession) -> None:
        """
        Load the course list with a capped number of attempts.

        Raises:
            NavigationError: If every attempt failed
        """
        url = self.settings.course_list_url
        attempts = self.settings.navigation_attempts
        delay = self.settings.navigation_retry_delay_ms / 1000

        for attempt in range(1, attempts + 1):
            try:
                await session.navigate(url)
                return
            except NavigationError as e:
                logger.warning(
                    "Navigation failed",
                    url=url,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e),
                )
                if attempt < attempts and await self._pause(delay):
                    break

        raise NavigationError(f"Could not load {url} after {attempts} attempts")

    async def run_cycle(self, session: PageSession) -> Optional[CycleReport]:
        """Navigate and run one poll cycle. Any failure counts as a cycle without progress."""
        self.cycles_run += 1
        snapshot = self.registry.list()

        with logfire.span("poll_cycle", cycle=self.cycles_run, crns=snapshot):
            try:
                await self.navigate_with_retry(session)
                report = await self.poll_cycle.run(
                    snapshot,
                    session,
                    self.session_state.term_code,
                    should_stop=lambda: self.stop_requested,
                )
            except Exception as e:
                logger.error(
                    "Poll cycle failed",
                    cycle=self.cycles_run,
                    error=str(e),
                    exc_info=True,
                )
                return None

        self.last_report = report
        logger.info(
            "Poll cycle complete",
            cycle=self.cycles_run,
            readings=report.readings,
            notified=report.notified,
            failed=report.failed,
            remaining=self.registry.list(),
        )
        return report

    async def _poll_until_done(self, session: PageSession) -> None:
        while self.registry.count() > 0:
            if self.stop_requested:
                self._transition(MonitorState.ABORTED)
                return

            self._transition(MonitorState.POLLING)
            if not await self.probe.is_reachable():
                logger.error(
                    "Not on the institution network, retrying later",
                    host=self.probe.host,
                    backoff_seconds=self.settings.connectivity_backoff_seconds,
                )
                await self._pause(self.settings.connectivity_backoff_seconds)
                continue

            await self.run_cycle(session)

            if self.registry.count() == 0 or self.stop_requested:
                continue

            self._transition(MonitorState.SLEEPING)
            logger.info(
                "Waiting for next check",
                wait_seconds=self.settings.check_interval_seconds,
                remaining=self.registry.list(),
            )
            await self._pause(self.settings.check_interval_seconds)

        self._transition(MonitorState.DONE)
        logger.info(
            "All monitored CRNs have seats, done",
            cycles=self.cycles_run,
            last_notified=self.last_report.notified if self.last_report else [],
        )

    async def run(self) -> MonitorState:
        """
        Drive the monitor to a terminal state.

        Returns:
            MonitorState.DONE when every CRN was notified, MonitorState.ABORTED on stop

        Raises:
            SessionError: If the browser session cannot be created
        """
        logger.info(
            "Starting Seat Finder",
            crns=self.registry.list(),
            term_code=self.session_state.term_code,
            interval_seconds=self.settings.check_interval_seconds,
        )

        try:
            self._transition(MonitorState.CONFIRMING)
            await self.send_confirmation()

            if self.stop_requested:
                self._transition(MonitorState.ABORTED)
                return self.state

            try:
                session = self.session_factory()
                async with session:
                    await self._poll_until_done(session)
            except SessionError as e:
                logger.error("Could not establish page session", error=str(e))
                self._transition(MonitorState.ABORTED)
                raise
        finally:
            if not self.state.is_terminal:
                self._transition(MonitorState.ABORTED)

        return self.state


def setup_signal_handlers(monitor: SeatMonitor) -> None:
    """Setup signal handlers for graceful shutdown."""
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        monitor.request_stop()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            signal.signal(
                signum,
                lambda s, _frame: loop.call_soon_threadsafe(signal_handler, s),
            )


async def run_monitor(plan: MonitorPlan, settings: Optional[Settings] = None) -> MonitorState:
    """Run a monitor for plan with signal handling installed."""
    monitor = SeatMonitor(plan, settings=settings)
    setup_signal_handlers(monitor)
    return await monitor.run()
