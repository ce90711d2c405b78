"""HTTP API exposing loan plan creation.

Routes:
  POST /loan-plan  — build an amortization schedule from a JSON request.
  GET  /health     — liveness probe.

Every failed request answers with the same envelope:
    {"error": {"message": "..."}}
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, NoReturn, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, StrictInt, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .calculator import InvalidParameterError, Payment, create_plan
from .config import CREATE_LOAN_PLAN_PATH, VERSION

logger = logging.getLogger(__name__)

PlanCreator = Callable[[Decimal, Decimal, int, date], list[Payment]]

DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


# ---- Schemas ----

class CreateLoanPlanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    loan_amount: str = Field("", alias="loanAmount")
    nominal_rate: str = Field("", alias="nominalRate")
    duration: StrictInt = 0
    # RFC 3339 with a mandatory UTC offset; the offset is kept as sent.
    start_date: Optional[AwareDatetime] = Field(None, alias="startDate")

    @field_validator("start_date", mode="before")
    @classmethod
    def _rfc3339_layout(cls, value):
        # Rejects timestamps, basic format and space-separated forms that
        # the datetime parser would otherwise accept.
        if value is None:
            return value
        if not isinstance(value, str) or len(value) <= 10 or value[10] not in "Tt":
            raise ValueError("must be an RFC 3339 date-time such as 2018-01-01T00:00:00Z")
        return value


class BorrowerPayment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str
    payment_amount: str = Field(alias="borrowerPaymentAmount")
    interest: str
    principal: str
    initial_outstanding_principal: str = Field(alias="initialOutstandingPrincipal")
    remaining_outstanding_principal: str = Field(alias="remainingOutstandingPrincipal")


class CreateLoanPlanResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    borrower_payments: list[BorrowerPayment] = Field(alias="borrowerPayments")


class ErrorDetail(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


# ---- Conversion helpers ----

def format_decimal(value: Decimal) -> str:
    """Plain notation without trailing zeros: 2000.0 -> "2000", 0.50 -> "0.5"."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def format_date(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(DATE_FORMAT)


def parse_decimal(field: str, raw: str) -> Decimal:
    # Decimal() also takes "5_000"; JSON clients must send plain digits.
    if "_" in raw:
        _raise_field_error(field, f"{raw!r} is not a decimal number")
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        _raise_field_error(field, f"{raw!r} is not a decimal number")
    if not value.is_finite():
        _raise_field_error(field, f"{raw!r} is not a finite number")
    return value


def _raise_field_error(field: str, reason: str) -> NoReturn:
    logger.warning("invalid field on request: field=%s error=%s", field, reason)
    raise HTTPException(status_code=400, detail=f"can't parse {field!r} from request: {reason}")


def to_borrower_payments(payments: list[Payment]) -> list[BorrowerPayment]:
    return [
        BorrowerPayment(
            date=format_date(p.date),
            payment_amount=format_decimal(p.payment_amount),
            interest=format_decimal(p.interest),
            principal=format_decimal(p.principal),
            initial_outstanding_principal=format_decimal(p.initial_outstanding_principal),
            remaining_outstanding_principal=format_decimal(p.remaining_outstanding_principal),
        )
        for p in payments
    ]


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


# ---- Dependencies ----

def get_plan_creator() -> PlanCreator:
    return create_plan


# ---- Application ----

def create_app() -> FastAPI:
    app = FastAPI(
        title="Loaner",
        description="Annuity loan repayment plans",
        version=VERSION,
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 405:
            logger.warning("method not allowed: path=%s method=%s", request.url.path, request.method)
        return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        reasons = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        logger.warning("invalid request body: path=%s error=%s", request.url.path, reasons)
        return error_response(400, f"invalid request body: {reasons}")

    @app.post(CREATE_LOAN_PLAN_PATH)
    def create_loan_plan(
        body: CreateLoanPlanRequest,
        plan_creator: PlanCreator = Depends(get_plan_creator),
    ) -> JSONResponse:
        loan_amount = parse_decimal("loanAmount", body.loan_amount)
        nominal_rate = parse_decimal("nominalRate", body.nominal_rate)
        start_date = body.start_date
        if start_date is None:
            _raise_field_error("startDate", "field is required")

        try:
            payments = plan_creator(loan_amount, nominal_rate, body.duration, start_date)
        except InvalidParameterError as exc:
            # Messages only carry the offending parameter, safe for clients.
            logger.warning("bad request error: %s", exc)
            return error_response(400, str(exc))
        except Exception:
            logger.exception("internal server error")
            return error_response(500, "internal server error")

        resp = CreateLoanPlanResponse(borrower_payments=to_borrower_payments(payments))
        return JSONResponse(status_code=200, content=resp.model_dump(by_alias=True))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
