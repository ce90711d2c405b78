"""Command line entry point — click group with two commands.

  loaner serve   Run the HTTP API under uvicorn.
  loaner plan    Print a repayment plan, computed locally or by a running
                 service (--url).
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import click
import uvicorn
from rich import box
from rich.console import Console
from rich.table import Table

from .calculator import InvalidParameterError, Payment, create_plan
from .client import ApiError, request_plan
from .config import VERSION, ZERO, configure_logging, settings

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True, style="bold red")

_START_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S"]

# ──────────────────────────────────────────────────────────────────────────────
# Formatting helpers
# ──────────────────────────────────────────────────────────────────────────────

def _fmt_money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _fmt_months(n: int) -> str:
    years, months = divmod(n, 12)
    if months == 0:
        return f"{n} months ({years} years)"
    return f"{n} months ({years}y {months}m)"


def display_plan(payments: list[Payment]) -> None:
    t = Table(title="Repayment Plan", box=box.MINIMAL_HEAVY_HEAD)
    for col in ("#", "Date", "Payment", "Interest", "Principal", "Opening", "Remaining"):
        t.add_column(col, justify="right")

    for i, p in enumerate(payments, start=1):
        t.add_row(
            str(i),
            p.date.strftime("%Y-%m-%d"),
            _fmt_money(p.payment_amount),
            _fmt_money(p.interest),
            _fmt_money(p.principal),
            _fmt_money(p.initial_outstanding_principal),
            _fmt_money(p.remaining_outstanding_principal),
        )
    console.print(t)

    total_paid = sum((p.payment_amount for p in payments), ZERO)
    total_interest = sum((p.interest for p in payments), ZERO)
    summary = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    summary.add_column("Field", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row("Duration", _fmt_months(len(payments)))
    summary.add_row("Total paid", _fmt_money(total_paid))
    summary.add_row("Total interest", _fmt_money(total_interest))
    console.print(summary)


def _parse_decimal(raw: str, name: str) -> Decimal:
    try:
        # Commas and spaces are thousands separators: "1,000.50".
        value = Decimal(raw.replace(",", "").replace(" ", ""))
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite():
        err_console.print(f"Invalid value for --{name}: '{raw}'")
        sys.exit(2)
    return value


# ──────────────────────────────────────────────────────────────────────────────
# Click entry point
# ──────────────────────────────────────────────────────────────────────────────

@click.group()
@click.version_option(VERSION, prog_name="loaner", message='%(prog)s version: "%(version)s"')
def main() -> None:
    """Annuity loan repayment plans."""


@main.command()
@click.option("--host", default=settings.host, show_default=True, help="Interface to bind")
@click.option("--port", type=int, default=settings.port, show_default=True, help="Port to listen on")
@click.option("--log-level", default=settings.log_level, show_default=True, help="Logging level")
def serve(host: str, port: int, log_level: str) -> None:
    """Serve the loan plan HTTP API."""
    configure_logging(log_level)
    logger.info("starting loaner %s on %s:%d", VERSION, host, port)
    uvicorn.run("loaner.api:app", host=host, port=port, log_level=log_level.lower())


@main.command()
@click.option("--amount", type=str, required=True, help="Total loan amount")
@click.option("--rate", type=str, required=True, help="Nominal annual interest rate in percent (e.g. 5.0)")
@click.option("--duration", type=int, required=True, help="Duration in months")
@click.option(
    "--start-date",
    type=click.DateTime(formats=_START_DATE_FORMATS),
    required=True,
    help="Date of the first payment (day of month 1-28)",
)
@click.option("--url", type=str, default=None, help="Base URL of a running loaner service")
def plan(amount: str, rate: str, duration: int, start_date: datetime, url: Optional[str]) -> None:
    """Print the repayment plan of a fixed-rate annuity loan."""
    total_loan_amount = _parse_decimal(amount, "amount")
    annual_interest_rate = _parse_decimal(rate, "rate")

    try:
        if url is None:
            payments = create_plan(total_loan_amount, annual_interest_rate, duration, start_date)
        else:
            payments = request_plan(url, total_loan_amount, annual_interest_rate, duration, start_date)
    except InvalidParameterError as exc:
        err_console.print(f"Parameter error: {exc}")
        sys.exit(2)
    except ApiError as exc:
        err_console.print(f"Service error: {exc}")
        sys.exit(2 if exc.status_code == 400 else 1)

    display_plan(payments)
