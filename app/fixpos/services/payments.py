from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.services.pricing import ZERO, money

PaymentMethod = Literal["cash", "card", "mobile_wallet", "bank_transfer", "check"]
PAYMENT_METHODS: tuple[str, ...] = ("cash", "card", "mobile_wallet", "bank_transfer", "check")
IMMEDIATE_METHODS = frozenset({"card", "bank_transfer", "check"})

UNSELECTED = "unselected"
COLLECTING = "collecting"
READY = "ready"


@dataclass(frozen=True)
class PaymentIntent:
    method: str
    amount_due: Decimal
    amount_tendered: Decimal
    change_due: Decimal = ZERO
    payer_phone: str | None = None
    payer_name: str | None = None

    @property
    def amount_paid(self) -> Decimal:
        return self.amount_due


class PaymentSession:
    """Per-checkout payment entry: ``unselected -> collecting -> ready``.

    Method-specific fields live only as long as the method that collected
    them; selecting any method starts from a clean slate.
    """

    def __init__(self, amount_due: Decimal, *, enabled_methods: dict[str, bool] | None = None):
        self._enabled = enabled_methods
        self.method: str | None = None
        self.amount_tendered: Decimal | None = None
        self.payer_phone = ""
        self.payer_name = ""
        self.amount_due = self._checked_amount(amount_due)

    @staticmethod
    def _checked_amount(amount_due: Decimal) -> Decimal:
        amount = money(amount_due)
        if amount <= ZERO:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "amount due must be greater than 0", "amount_due": str(amount_due)},
            )
        return amount

    def _reset_fields(self) -> None:
        self.amount_tendered = None
        self.payer_phone = ""
        self.payer_name = ""

    def set_amount_due(self, amount_due: Decimal) -> None:
        """Deposit entry happens before method selection, so it starts over."""
        self.amount_due = self._checked_amount(amount_due)
        self.method = None
        self._reset_fields()

    def select_method(self, method: str) -> str:
        if method not in PAYMENT_METHODS:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unsupported payment method", "method": method})
        if self._enabled is not None and not self._enabled.get(method, False):
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "payment method disabled", "method": method})
        self.method = method
        self._reset_fields()
        return self.state

    def _require_method(self, expected: str) -> None:
        if self.method != expected:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": f"field only applies to {expected} payments", "method": self.method},
            )

    def enter_tendered(self, amount: Decimal) -> str:
        self._require_method("cash")
        if amount < ZERO:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "tendered amount must be >= 0"})
        self.amount_tendered = amount
        return self.state

    def enter_payer(self, *, phone: str | None, name: str | None) -> str:
        self._require_method("mobile_wallet")
        self.payer_phone = (phone or "").strip()
        self.payer_name = (name or "").strip()
        return self.state

    @property
    def state(self) -> str:
        if self.method is None:
            return UNSELECTED
        if self.method in IMMEDIATE_METHODS:
            return READY
        if self.method == "cash":
            if self.amount_tendered is not None and self.amount_tendered >= self.amount_due:
                return READY
            return COLLECTING
        if self.payer_phone and self.payer_name:
            return READY
        return COLLECTING

    @property
    def is_ready(self) -> bool:
        return self.state == READY

    @property
    def change_due(self) -> Decimal:
        if self.method != "cash" or self.amount_tendered is None:
            return ZERO
        return max(ZERO, self.amount_tendered - self.amount_due)

    def intent(self) -> PaymentIntent:
        if not self.is_ready:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={
                    "message": "payment is not ready",
                    "method": self.method,
                    "state": self.state,
                    "amount_due": str(money(self.amount_due)),
                },
            )
        tendered = self.amount_tendered if self.method == "cash" else self.amount_due
        wallet = self.method == "mobile_wallet"
        return PaymentIntent(
            method=self.method,
            amount_due=self.amount_due,
            amount_tendered=tendered,
            change_due=self.change_due,
            payer_phone=self.payer_phone if wallet else None,
            payer_name=self.payer_name if wallet else None,
        )
