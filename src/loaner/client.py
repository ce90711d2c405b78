"""HTTP client for a running loaner service.

Posts loan parameters to ``/loan-plan`` and turns the JSON answer back into
Payment objects.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation

import requests

from .calculator import Payment
from .config import CLIENT_TIMEOUT, CREATE_LOAN_PLAN_PATH

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when a plan request fails for any reason."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _start_date_string(start_date: date) -> str:
    if not isinstance(start_date, datetime):
        start_date = datetime.combine(start_date, time(), tzinfo=timezone.utc)
    elif start_date.tzinfo is None:
        start_date = start_date.replace(tzinfo=timezone.utc)
    return start_date.isoformat()


def request_plan(
    base_url: str,
    total_loan_amount: Decimal,
    annual_interest_rate: Decimal,
    duration_in_months: int,
    start_date: date,
) -> list[Payment]:
    """Ask the service at *base_url* for a repayment plan.

    Raises ApiError on network failures, non-2xx answers and bodies that
    cannot be parsed.
    """
    url = base_url.rstrip("/") + CREATE_LOAN_PLAN_PATH
    payload = {
        "loanAmount": str(total_loan_amount),
        "nominalRate": str(annual_interest_rate),
        "duration": duration_in_months,
        "startDate": _start_date_string(start_date),
    }
    logger.debug("requesting loan plan: url=%s payload=%s", url, payload)
    try:
        resp = requests.post(url, json=payload, timeout=CLIENT_TIMEOUT)
    except requests.RequestException as exc:
        raise ApiError(f"loan plan request failed: {exc}") from exc

    if not resp.ok:
        raise ApiError(_error_message(resp), status_code=resp.status_code)

    try:
        return [_to_payment(item) for item in resp.json()["borrowerPayments"]]
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise ApiError(f"failed to parse loan plan response: {exc}") from exc


def _error_message(resp: requests.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (KeyError, TypeError, ValueError):
        return f"service answered with status {resp.status_code}"


def _to_payment(item: dict) -> Payment:
    return Payment(
        date=datetime.fromisoformat(item["date"].replace("Z", "+00:00")),
        payment_amount=Decimal(item["borrowerPaymentAmount"]),
        interest=Decimal(item["interest"]),
        principal=Decimal(item["principal"]),
        initial_outstanding_principal=Decimal(item["initialOutstandingPrincipal"]),
        remaining_outstanding_principal=Decimal(item["remainingOutstandingPrincipal"]),
    )
