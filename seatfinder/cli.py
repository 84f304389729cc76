"""
Command line entry point for Seat Finder.
Collects the user's address, term and CRNs, then runs the monitor.
"""

import argparse
import asyncio
import sys
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from seatfinder.config import Settings, get_settings
from seatfinder.exceptions import SeatFinderError, SetupError
from seatfinder.models.schemas import (
    CRN_PATTERN,
    TERM_CODE_PATTERN,
    MonitorPlan,
    MonitorState,
    Term,
)
from seatfinder.observability.logfire_config import initialize_logfire
from seatfinder.runner import configure_logging, run_monitor
from seatfinder.services.connectivity import ConnectivityProbe
from seatfinder.services.registry import CourseRegistry

logger = structlog.get_logger(__name__)

Prompt = Callable[[str], str]

BANNER = """
=== Course Seat Finder ===

Important Notes:
1. You must use your institutional email ({domain})
2. You must be connected to the campus network or VPN
3. The program checks every {interval:g} seconds until seats are found
4. Press Ctrl+C at any time to stop the program
"""


def validate_email(email: str, domain: str) -> str:
    email = email.strip()
    if not email.lower().endswith(domain) or len(email) <= len(domain):
        raise SetupError(
            f"Invalid email address: {email!r}",
            f"Please use your institutional address ending in {domain}.",
        )
    return email


def build_term_code(year: object, term_choice: object) -> str:
    """Combine a school year and a term selection into the 6-digit term code."""
    try:
        term = Term.from_choice(term_choice)
    except ValueError as e:
        raise SetupError(
            "Invalid term choice.",
            "Choose 1 (Fall), 2 (Winter), 3 (Spring) or 4 (Summer).",
        ) from e

    term_code = f"{str(year).strip()}{term.code}"
    if not TERM_CODE_PATTERN.match(term_code):
        raise SetupError(
            "Term code must be 6 digits.",
            "Enter the school year as four digits, e.g. 2026 for fall 2025-2026.",
        )
    return term_code


def collect_crns(prompt: Prompt = input, echo: Callable[[str], None] = print) -> list[str]:
    """Prompt for CRNs until an empty entry, requiring at least one."""
    registry = CourseRegistry()
    while True:
        crn = prompt("Enter CRN (or press Enter to start): ").strip()
        if not crn:
            if registry.count():
                return registry.list()
            echo("Add at least one CRN.")
            continue
        if not CRN_PATTERN.match(crn):
            echo("CRN must be exactly 5 digits.")
            continue
        if registry.add(crn):
            echo(f"Added CRN {crn}.")
        else:
            echo(f"CRN {crn} is already in the list.")


def prompt_plan(settings: Settings, prompt: Prompt = input) -> MonitorPlan:
    """Interactive setup."""
    domain = settings.email_domain
    email = validate_email(prompt(f"Institutional email (uniqueid{domain}): "), domain)
    year = prompt("Course school year (e.g., 2026 for fall 2025-2026): ").strip()
    term_choice = prompt("Course term (1:Fall 2:Winter 3:Spring 4:Summer): ").strip()
    term_code = build_term_code(year, term_choice)
    crns = collect_crns(prompt)
    return MonitorPlan(email=email, term_code=term_code, crns=crns)


def load_plan(settings: Settings, path: Optional[str] = None) -> MonitorPlan:
    """File-based setup from a YAML document."""
    try:
        config = settings.load_setup_config(path)
    except (OSError, ValueError) as e:
        raise SetupError(str(e), "Check the setup file path and its email/year/term/crns keys.") from e

    email = validate_email(str(config["email"]), settings.email_domain)
    term_code = build_term_code(config["year"], config["term"])

    crns = config["crns"]
    if not isinstance(crns, list):
        raise SetupError("'crns' must be a list of CRNs.")
    for crn in crns:
        if not isinstance(crn, str):
            raise SetupError(
                f"CRN {crn!r} in setup file is not a quoted string.",
                'Quote every CRN, e.g. - "01234"; unquoted numbers lose leading zeros.',
            )
    registry = CourseRegistry(crn.strip() for crn in crns)

    try:
        return MonitorPlan(email=email, term_code=term_code, crns=registry.list())
    except ValidationError as e:
        raise SetupError(
            f"Invalid CRN list in setup file: {e.errors()[0]['msg']}",
            "Each CRN must be exactly 5 digits and at least one is required.",
        ) from e


async def check_initial_connectivity(settings: Settings) -> None:
    probe = ConnectivityProbe(settings.connectivity_host, settings.connectivity_timeout)
    if not await probe.is_reachable():
        raise SetupError(
            "Not connected to the institution network/VPN.",
            "Connect to the campus network or VPN and start again.",
        )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="seat-finder",
        description="Email yourself when monitored course sections have open seats.",
    )
    parser.add_argument(
        "--config",
        help="YAML setup file with email, year, term and crns (skips the prompts)",
    )
    return parser.parse_args(argv)


async def _run(plan: MonitorPlan, settings: Settings) -> MonitorState:
    await check_initial_connectivity(settings)
    print("\nStarting seat checker... leave this window open to keep checking.\n")
    return await run_monitor(plan, settings)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Fatal: invalid configuration\n{e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level)
    initialize_logfire()

    try:
        if args.config or settings.setup_config_path:
            plan = load_plan(settings, args.config)
        else:
            print(BANNER.format(domain=settings.email_domain, interval=settings.check_interval_seconds))
            plan = prompt_plan(settings)
        logger.info("Setup complete", crns=plan.crns, term_code=plan.term_code)
        state = asyncio.run(_run(plan, settings))
    except (KeyboardInterrupt, EOFError):
        print("\nCancelled.")
        return 0
    except SeatFinderError as e:
        print(f"Fatal: {e}", file=sys.stderr)
        return 1

    if state is MonitorState.DONE:
        print("All monitored CRNs have seats - done.")
    else:
        print("Monitoring stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
