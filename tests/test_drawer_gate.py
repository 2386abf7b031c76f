import uuid
from datetime import date
from decimal import Decimal

import pytest

from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.services.drawer_gate import (
    REMEDIATION_OPEN_DRAWER,
    DrawerSession,
    assert_settleable,
    count_denominations,
    entry_warning,
)


def _session(status: str) -> DrawerSession:
    return DrawerSession(id=str(uuid.uuid4()), date=date(2026, 3, 1), status=status, opening_float=Decimal("100"))


def test_open_session_is_settleable():
    session = _session("open")

    assert assert_settleable(session) is session
    assert entry_warning(session) is None


@pytest.mark.parametrize("session", [None, _session("closed")])
def test_missing_or_closed_session_blocks_settlement(session):
    with pytest.raises(AppError) as excinfo:
        assert_settleable(session)

    assert excinfo.value.error == ErrorCatalog.DRAWER_CLOSED
    assert excinfo.value.details["remediation"] == REMEDIATION_OPEN_DRAWER


def test_entry_warning_offers_open_drawer():
    warning = entry_warning(None)

    assert warning["code"] == "DRAWER_CLOSED"
    assert warning["remediation"] == REMEDIATION_OPEN_DRAWER


def test_count_denominations():
    total = count_denominations({"bills_20": 3, "bills_1": 5, "coins_025": 4, "coins_050": 1})

    assert total == Decimal("66.50")


def test_count_denominations_rejects_unknown_keys_and_negative_counts():
    with pytest.raises(AppError):
        count_denominations({"bills_3": 1})
    with pytest.raises(AppError):
        count_denominations({"bills_5": -1})
