from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class DrawerActionRequest(BaseModel):
    action: Literal["OPEN"] = "OPEN"
    opening_float: Decimal | None = None
    denominations: dict[str, int] | None = None
    opened_by: str | None = None


class DrawerSessionSummary(BaseModel):
    id: str
    business_date: date
    status: str
    opening_float: Decimal


class DrawerWarning(BaseModel):
    code: str
    message: str
    remediation: str


class DrawerCurrentResponse(BaseModel):
    session: DrawerSessionSummary | None
    warning: DrawerWarning | None = None
