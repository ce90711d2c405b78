"""Application-wide constants and runtime settings.

Calculation constants live here so there is a single place to adjust them.
Process settings (host, port, log level) are read from the environment
with the ``LOANER_`` prefix, or from a local ``.env`` file.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from importlib.metadata import PackageNotFoundError, version

from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Numeric convenience ───────────────────────────────────────────────────────

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Significant digits kept for intermediate results (monthly rate, powers).
CALCULATION_PRECISION: int = 28
# Upper bound once the precision is widened for very small monthly rates.
MAX_CALCULATION_PRECISION: int = 4 * CALCULATION_PRECISION

# ── Calendar / day-count conventions ─────────────────────────────────────────

MONTHS_PER_YEAR: int = 12
DAYS_PER_MONTH = Decimal("30")   # 30/360
DAYS_PER_YEAR = Decimal("360")

# Start days above this would need end-of-month handling when advancing.
MAX_START_DAY: int = 28

# ── HTTP ──────────────────────────────────────────────────────────────────────

CREATE_LOAN_PLAN_PATH = "/loan-plan"
CLIENT_TIMEOUT = 10  # seconds

# ── Version ───────────────────────────────────────────────────────────────────

try:
    VERSION: str = version("loaner")
except PackageNotFoundError:
    VERSION = "no version info"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LOANER_", env_file=".env", env_file_encoding="utf-8"
    )

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"


settings = Settings()


def configure_logging(level: str = settings.log_level) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
