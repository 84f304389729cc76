"""
Pydantic models for data structures and schemas.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from seatfinder.exceptions import StatusParseError

CRN_PATTERN = re.compile(r"^[0-9]{5}$")
TERM_CODE_PATTERN = re.compile(r"^\d{6}$")
_STATUS_PATTERN = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")


class Term(Enum):
    """Academic term selector and its two-digit code suffix."""

    FALL = (1, "10")
    WINTER = (2, "15")
    SPRING = (3, "20")
    SUMMER = (4, "30")

    def __init__(self, choice: int, code: str):
        self.choice = choice
        self.code = code

    @classmethod
    def from_choice(cls, value: object) -> "Term":
        """Resolve a menu number (1-4) or a term name such as 'Spring'."""
        text = str(value).strip()
        for term in cls:
            if text == str(term.choice) or text.upper() == term.name:
                return term
        raise ValueError(f"Unknown term selection: {value!r}")


class MonitorState(str, Enum):
    """States of the monitor loop."""

    INIT = "init"
    CONFIRMING = "confirming"
    POLLING = "polling"
    SLEEPING = "sleeping"
    DONE = "done"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (MonitorState.DONE, MonitorState.ABORTED)


class CourseRecord(BaseModel):
    """A course section being watched for open seats."""

    crn: str = Field(..., description="The 5-digit course reference number")
    notified: bool = Field(
        default=False,
        description="True once a seat-availability email was dispatched",
    )


class SessionState(BaseModel):
    """Per-run state owned by the monitor loop."""

    term_code: str = Field(..., description="6-digit school year + term code")
    confirmation_sent: bool = Field(
        default=False,
        description="True after the start-of-run confirmation email went out",
    )

    model_config = {"validate_assignment": True}

    @field_validator("term_code")
    @classmethod
    def validate_term_code(cls, v: str) -> str:
        if not TERM_CODE_PATTERN.match(v):
            raise ValueError("Term code must be 6 digits")
        return v


class StatusReading(BaseModel):
    """Enrollment counts read from the page for one CRN at one instant."""

    current: int = Field(..., ge=0, description="Enrolled seat count")
    capacity: int = Field(..., ge=0, description="Maximum seat count")

    @computed_field
    @property
    def open_seats(self) -> int:
        return self.capacity - self.current

    @property
    def is_available(self) -> bool:
        return self.open_seats > 0

    @classmethod
    def parse(cls, text: Optional[str]) -> "StatusReading":
        """
        Parse status text formatted as '<current>/<capacity>'.

        Raises:
            StatusParseError: If the text is missing or not an integer pair
        """
        match = _STATUS_PATTERN.match(text or "")
        if match is None:
            raise StatusParseError(text or "")
        return cls(current=int(match.group(1)), capacity=int(match.group(2)))

    def __str__(self) -> str:
        return f"{self.current}/{self.capacity}"


class NotificationResult(BaseModel):
    """Result of email notification delivery."""

    success: bool = Field(
        description="Whether the notification was sent successfully"
    )
    recipient: str = Field(description="Recipient email address")
    subject: str = Field(default="", description="Subject line that was sent")
    error: Optional[str] = Field(
        default=None,
        description="Error message if delivery failed",
    )
    sent_at: datetime = Field(
        default_factory=datetime.now,
        description="When the notification was attempted",
    )


class CycleReport(BaseModel):
    """Outcome of one poll cycle, used for logging."""

    checked: list[str] = Field(default_factory=list)
    notified: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    readings: dict[str, str] = Field(
        default_factory=dict,
        description="Status text per CRN, e.g. {'12345': '30/30'}",
    )


class MonitorPlan(BaseModel):
    """Validated result of interactive or file-based setup."""

    email: str = Field(..., description="Institutional address, sender and recipient")
    term_code: str = Field(..., description="6-digit school year + term code")
    crns: list[str] = Field(..., min_length=1)

    @field_validator("term_code")
    @classmethod
    def validate_term_code(cls, v: str) -> str:
        if not TERM_CODE_PATTERN.match(v):
            raise ValueError("Term code must be 6 digits")
        return v

    @field_validator("crns")
    @classmethod
    def validate_crns(cls, v: list[str]) -> list[str]:
        for crn in v:
            if not CRN_PATTERN.match(crn):
                raise ValueError(f"CRN must be exactly 5 digits: {crn!r}")
        return v
