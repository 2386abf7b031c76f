from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from app.fixpos.schemas.drawer import DrawerWarning


class CheckoutLineInput(BaseModel):
    item_id: str
    kind: Literal["product", "service"]
    quantity: int = 1
    # Only read for service lines that are not in the catalog.
    name: str | None = None
    unit_price: Decimal | None = None


class DiscountInput(BaseModel):
    type: Literal["none", "percentage", "fixed"] = "none"
    value: Decimal = Decimal("0")
    preset: int | None = None


class PaymentInput(BaseModel):
    method: Literal["cash", "card", "mobile_wallet", "bank_transfer", "check"]
    amount_tendered: Decimal | None = None
    payer_phone: str | None = None
    payer_name: str | None = None


class CheckoutQuoteRequest(BaseModel):
    lines: list[CheckoutLineInput]
    discount: DiscountInput | None = None
    customer_id: str | None = None
    order_id: str | None = None
    mode: Literal["full", "deposit"] = "full"
    amount_due: Decimal | None = None
    payment: PaymentInput | None = None


class CheckoutSettleRequest(CheckoutQuoteRequest):
    checkout_id: UUID
    payment: PaymentInput
    operator: str | None = None
    notes: str | None = None


class CheckoutConfigResponse(BaseModel):
    tax_rate_percent: Decimal
    payment_methods: dict[str, bool]
    quick_discount_presets: list[int]
    drawer_warning: DrawerWarning | None = None


class CheckoutLineResponse(BaseModel):
    item_id: str
    name: str
    quantity: int
    unit_price: Decimal
    original_unit_price: Decimal | None
    discount_label: str | None
    line_total: Decimal
    promotion_savings: Decimal


class TotalsResponse(BaseModel):
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    total: Decimal


class PaymentStatusResponse(BaseModel):
    method: str | None
    state: str
    ready: bool
    amount_due: Decimal
    change_due: Decimal


class CheckoutQuoteResponse(BaseModel):
    lines: list[CheckoutLineResponse]
    totals: TotalsResponse
    tax_rate: Decimal
    mode: str
    amount_due: Decimal
    outstanding_balance: Decimal | None = None
    points_to_earn: int = 0
    payment: PaymentStatusResponse | None = None
    drawer_warning: DrawerWarning | None = None


class CustomerSummaryResponse(BaseModel):
    id: str
    name: str
    points_earned: int
    loyalty_points: int
    loyalty_tier: str
    tier_changed: bool


class WorkOrderBalanceResponse(BaseModel):
    order_id: str
    order_number: str
    order_total: Decimal
    total_paid_before: Decimal
    total_paid_after: Decimal
    balance_after: Decimal
    paid: bool
    status_before: str
    status_transition: str | None


class SettlementReceiptResponse(BaseModel):
    sale_id: str
    sale_number: str
    created_at: datetime
    lines: list[CheckoutLineResponse]
    totals: TotalsResponse
    discount_type: str
    discount_value: Decimal
    tax_rate: Decimal
    method: str
    mode: str
    amount_paid: Decimal
    amount_tendered: Decimal
    change_due: Decimal
    points_earned: int
    payer_phone: str | None = None
    payer_name: str | None = None
    customer: CustomerSummaryResponse | None = None
    work_order: WorkOrderBalanceResponse | None = None
    completed_steps: list[str]
    skipped_steps: list[str]
    signals_delivered: bool
    signal_failures: list[str]


class SaleLineResponse(BaseModel):
    position: int
    item_id: str
    kind: str
    name: str
    quantity: int
    unit_price: Decimal
    original_unit_price: Decimal | None
    discount_label: str | None
    line_total: Decimal


class SaleResponse(BaseModel):
    sale_id: str
    sale_number: str
    customer_id: str | None
    customer_name: str | None
    order_id: str | None
    subtotal: Decimal
    discount_type: str
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    amount_tendered: Decimal
    change_due: Decimal
    payment_method: str
    payment_mode: str
    points_earned: int
    employee: str | None
    created_at: datetime
    lines: list[SaleLineResponse]
