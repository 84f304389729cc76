"""
Tests for PlaywrightPageSession with Playwright mocked out.
"""

import asyncio
from unittest import mock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from seatfinder.exceptions import ElementNotFoundError, NavigationError, SessionError
from seatfinder.services.page_session import PlaywrightPageSession


def playwright_mock():
    page = mock.MagicMock()
    for name in ("goto", "wait_for_selector", "query_selector", "fill", "click", "select_option"):
        setattr(page, name, mock.AsyncMock())
    context = mock.MagicMock()
    context.new_page = mock.AsyncMock(return_value=page)
    browser = mock.MagicMock()
    browser.new_context = mock.AsyncMock(return_value=context)
    browser.close = mock.AsyncMock()
    driver = mock.MagicMock()
    driver.chromium.launch = mock.AsyncMock(return_value=browser)
    driver.stop = mock.AsyncMock()
    starter = mock.MagicMock()
    starter.return_value.start = mock.AsyncMock(return_value=driver)
    return starter, driver, browser, page


def started_session():
    starter, driver, browser, page = playwright_mock()
    session = PlaywrightPageSession(navigation_timeout_ms=5_000)
    with mock.patch("seatfinder.services.page_session.async_playwright", starter):
        asyncio.run(session.initialize())
    return session, driver, browser, page


def test_initialize_opens_page():
    session, driver, browser, page = started_session()

    assert session.page is page
    driver.chromium.launch.assert_awaited_once()
    assert driver.chromium.launch.call_args.kwargs["headless"] is True
    page.set_default_navigation_timeout.assert_called_once_with(5_000)


def test_close_is_idempotent():
    session, driver, browser, _ = started_session()

    asyncio.run(session.close())
    asyncio.run(session.close())

    browser.close.assert_awaited_once()
    driver.stop.assert_awaited_once()
    assert session.page is None


def test_close_stops_driver_when_browser_close_fails():
    session, driver, browser, _ = started_session()
    browser.close.side_effect = RuntimeError("Target closed")

    with pytest.raises(RuntimeError):
        asyncio.run(session.close())

    driver.stop.assert_awaited_once()
    assert session._playwright is None
    assert session.browser is None


def test_initialize_failure_is_a_session_error():
    starter, driver, _, _ = playwright_mock()
    driver.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")
    driver.stop.side_effect = RuntimeError("driver gone")
    session = PlaywrightPageSession()

    with mock.patch("seatfinder.services.page_session.async_playwright", starter):
        with pytest.raises(SessionError, match="Executable doesn't exist"):
            asyncio.run(session.initialize())

    driver.stop.assert_awaited_once()
    assert session._playwright is None


def test_navigate_error_becomes_navigation_error():
    session, _, _, page = started_session()
    page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

    with pytest.raises(NavigationError, match="ERR_NAME_NOT_RESOLVED"):
        asyncio.run(session.navigate("https://www.apps.miamioh.edu/courselist/"))
    assert page.goto.call_args.kwargs["wait_until"] == "networkidle"


def test_wait_timeout_becomes_element_not_found():
    session, _, _, page = started_session()
    page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 100ms exceeded")

    with pytest.raises(ElementNotFoundError) as excinfo:
        asyncio.run(session.wait_for_element("#courseSectionTable", 100))
    assert excinfo.value.selector == "#courseSectionTable"


def test_read_text():
    session, _, _, page = started_session()
    element = mock.MagicMock()
    element.inner_text = mock.AsyncMock(return_value="  29/30\n")
    page.query_selector.return_value = element

    assert asyncio.run(session.read_text("td.status")) == "29/30"

    page.query_selector.return_value = None
    with pytest.raises(ElementNotFoundError):
        asyncio.run(session.read_text("td.status"))


def test_check_option_by_label():
    session, _, _, page = started_session()
    checkbox = page.locator.return_value.first.locator.return_value
    checkbox.count = mock.AsyncMock(return_value=0)
    checkbox.first.click = mock.AsyncMock()

    assert asyncio.run(session.check_option_by_label("Oxford")) is False
    checkbox.first.click.assert_not_awaited()

    checkbox.count.return_value = 1
    assert asyncio.run(session.check_option_by_label("Oxford")) is True
    checkbox.first.click.assert_awaited_once()
    page.locator.assert_called_with("label", has_text="Oxford")


def test_operations_before_initialize_raise():
    session = PlaywrightPageSession()

    with pytest.raises(SessionError):
        asyncio.run(session.click("#search"))
