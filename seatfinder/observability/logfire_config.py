"""
Simple Logfire configuration.
Spans around poll cycles and notifications are exported only when a token is set.
"""

import logfire

from seatfinder.config import get_settings

_initialized = False


def initialize_logfire():
    """
    Initialize Logfire once.

    Without LOGFIRE_TOKEN nothing is configured and spans stay local no-ops.
    """
    global _initialized
    if _initialized:
        return

    settings = get_settings()
    if not settings.logfire_token:
        return  # Skip if no token configured

    logfire.configure(
        token=settings.logfire_token,
        service_name="seat-finder",
        console=False,
    )

    _initialized = True
