"""
Shared fakes for the page session, notifier and connectivity probe.
"""

import pytest

from seatfinder.config import Settings
from seatfinder.exceptions import ElementNotFoundError, NavigationError
from seatfinder.models.schemas import MonitorPlan, NotificationResult
from seatfinder.services.page_session import PageSession


class FakePageSession(PageSession):
    """In-memory course list page.

    statuses maps CRN -> status text; a missing CRN behaves like a timeout.
    """

    def __init__(self, statuses=None, navigation_failures=0):
        self.statuses = dict(statuses or {})
        self.navigation_failures = navigation_failures
        self.navigations = 0
        self.searched = []
        self.calls = []
        self.closed = 0
        self.entered = False
        self.values = {}

    async def __aenter__(self):
        self.entered = True
        return self

    async def close(self):
        self.closed += 1

    async def navigate(self, url):
        self.navigations += 1
        self.calls.append(("navigate", url))
        if self.navigation_failures > 0:
            self.navigation_failures -= 1
            raise NavigationError(f"Could not load {url}: net::ERR_TIMED_OUT")

    async def wait_for_element(self, selector, timeout_ms):
        self.calls.append(("wait", selector))
        if selector.startswith("#statusMessage"):
            crn = selector[len("#statusMessage"):]
            if crn not in self.statuses:
                raise ElementNotFoundError(selector, timeout_ms)

    async def read_text(self, selector):
        return self.statuses[selector[len("#statusMessage"):]]

    async def set_value(self, selector, value):
        self.values[selector] = value
        self.searched.append(value)

    async def click(self, selector):
        self.calls.append(("click", selector))

    async def select_option(self, selector, value):
        self.calls.append(("select", selector, value))

    async def check_option_by_label(self, text):
        self.calls.append(("check", text))
        return True


class FakeNotifier:
    """Records messages; outcomes pops a success flag per availability alert."""

    def __init__(self, outcomes=None, confirmation_ok=True):
        self.outcomes = list(outcomes or [])
        self.confirmation_ok = confirmation_ok
        self.alerts = []
        self.confirmations = []

    async def send_availability_alert(self, to_address, crn, reading):
        self.alerts.append((to_address, crn, reading))
        success = self.outcomes.pop(0) if self.outcomes else True
        return NotificationResult(
            success=success,
            recipient=to_address,
            subject=f"Seat available for CRN {crn}",
            error=None if success else "SMTP error: 451 relay unavailable",
        )

    async def send_confirmation(self, to_address, crns, interval_seconds):
        self.confirmations.append((to_address, list(crns), interval_seconds))
        return NotificationResult(
            success=self.confirmation_ok,
            recipient=to_address,
            error=None if self.confirmation_ok else "SMTP error: connection refused",
        )


class FakeProbe:
    """Returns the queued answers, then the default."""

    host = "mualmaip11.mcs.miamioh.edu"

    def __init__(self, answers=(), default=True):
        self.answers = list(answers)
        self.default = default
        self.checks = 0

    async def is_reachable(self):
        self.checks += 1
        if self.answers:
            return self.answers.pop(0)
        return self.default


@pytest.fixture
def settings():
    return Settings(
        check_interval_ms=1,
        connectivity_backoff_seconds=0.001,
        navigation_attempts=3,
        navigation_retry_delay_ms=0,
        _env_file=None,
    )


@pytest.fixture
def plan():
    return MonitorPlan(email="student@miamioh.edu", term_code="202620", crns=["12345"])
