"""
Exception hierarchy for Seat Finder.
Setup and session errors are fatal; everything else is recovered inside the loop.
"""


class SeatFinderError(Exception):
    """Base class for all Seat Finder errors."""


class SetupError(SeatFinderError):
    """Invalid operator input or environment detected before monitoring starts."""

    def __init__(self, message: str, remediation: str = ""):
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        message = super().__str__()
        if self.remediation:
            return f"{message}\n{self.remediation}"
        return message


class SessionError(SeatFinderError):
    """The browser page session could not be created."""


class NavigationError(SeatFinderError):
    """A single navigation attempt to the course list failed."""


class ElementNotFoundError(SeatFinderError):
    """An expected page element did not appear within its timeout."""

    def __init__(self, selector: str, timeout_ms: int):
        super().__init__(f"Element {selector} not found within {timeout_ms} ms")
        self.selector = selector
        self.timeout_ms = timeout_ms


class StatusParseError(SeatFinderError):
    """Status text could not be read as '<current>/<capacity>'."""

    def __init__(self, text: str):
        super().__init__(f"Malformed status text: {text!r}")
        self.text = text
