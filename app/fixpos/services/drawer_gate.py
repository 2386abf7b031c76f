"""Cash drawer session gate.

Settlement may only run while today's drawer session is open. The gate is
checked once when the checkout opens (as a warning) and again by the
settlement orchestrator right before its first write. When it fails, the
only remediation offered is opening a drawer session; settlement is then
retried by the operator, never automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from app.fixpos.core.config import settings
from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.core.logging import log_json
from app.fixpos.db.models import CashRegister
from app.fixpos.repos.drawer import DrawerRepository
from app.fixpos.services.pricing import ZERO, money, to_decimal

logger = logging.getLogger(__name__)

REMEDIATION_OPEN_DRAWER = "open_drawer"

DENOMINATIONS: dict[str, Decimal] = {
    "bills_100": Decimal("100"),
    "bills_50": Decimal("50"),
    "bills_20": Decimal("20"),
    "bills_10": Decimal("10"),
    "bills_5": Decimal("5"),
    "bills_1": Decimal("1"),
    "coins_1": Decimal("1"),
    "coins_050": Decimal("0.50"),
    "coins_025": Decimal("0.25"),
}


@dataclass(frozen=True)
class DrawerSession:
    id: str
    date: date
    status: str
    opening_float: Decimal

    @property
    def is_open(self) -> bool:
        return self.status == "open"


def to_session(register: CashRegister | None) -> DrawerSession | None:
    if register is None:
        return None
    return DrawerSession(
        id=str(register.id),
        date=register.business_date,
        status=register.status,
        opening_float=to_decimal(register.opening_float),
    )


def business_today() -> date:
    return datetime.now(ZoneInfo(settings.DRAWER_TIMEZONE)).date()


def assert_settleable(session: DrawerSession | None) -> DrawerSession:
    if session is None or not session.is_open:
        raise AppError(
            ErrorCatalog.DRAWER_CLOSED,
            details={
                "remediation": REMEDIATION_OPEN_DRAWER,
                "session_id": session.id if session else None,
            },
        )
    return session


def entry_warning(session: DrawerSession | None) -> dict | None:
    """Non-raising variant for the checkout entry screen."""
    if session is not None and session.is_open:
        return None
    return {
        "code": ErrorCatalog.DRAWER_CLOSED.code,
        "message": ErrorCatalog.DRAWER_CLOSED.message,
        "remediation": REMEDIATION_OPEN_DRAWER,
    }


def count_denominations(counts: dict[str, int]) -> Decimal:
    total = ZERO
    for key, count in counts.items():
        if key not in DENOMINATIONS:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unknown denomination", "key": key})
        if count < 0:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "denomination count must be >= 0", "key": key},
            )
        total += DENOMINATIONS[key] * count
    return total


class DrawerService:
    def __init__(self, db):
        self.repo = DrawerRepository(db)

    async def get_open_session_for_today(self) -> DrawerSession | None:
        return to_session(await self.repo.get_open_for_date(business_today()))

    async def open_session(
        self,
        opening_float: Decimal | None = None,
        *,
        denominations: dict[str, int] | None = None,
        opened_by: str | None = None,
    ) -> DrawerSession:
        if denominations:
            opening_float = count_denominations(denominations)
        if opening_float is None or opening_float <= ZERO:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "opening float must be greater than 0"},
            )
        today = business_today()
        if await self.repo.get_open_for_date(today) is not None:
            raise AppError(ErrorCatalog.DRAWER_ALREADY_OPEN, details={"business_date": today.isoformat()})
        register = await self.repo.create(
            CashRegister(
                business_date=today,
                status="open",
                opening_float=float(money(opening_float)),
                denominations=denominations or None,
                opened_by=opened_by,
                opened_at=datetime.utcnow(),
            )
        )
        log_json(
            logger,
            {
                "event": "drawer_opened",
                "session_id": str(register.id),
                "business_date": today,
                "opening_float": money(opening_float),
            },
        )
        return to_session(register)
