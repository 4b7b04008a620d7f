# Overview: Multi-record withdrawal for one customer/commodity, allocated oldest-first.

"""
Bulk Outflow

WHY: A farmer asks for "250 bags of wheat", not for bags from record #14.
The bags are taken from the customer's open records in FIFO order and billed
per record.

DESIGN PRINCIPLES:
- One database transaction for the whole batch: either every record,
  payment and ledger row is written or none is
- Stock is checked before anything is touched
- Computed rent is authoritative; a client estimate is only compared
- Money paid at the gate is split across records by rent weight with
  exact conservation (largest remainder)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Sequence

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer
from . import (
    allocation_service,
    impact_service,
    ledger_service,
    notification_service,
    payment_service,
    rent_service,
    storage_service,
)
from .concurrency import run_atomic
from .outflow_service import assign_outflow_invoice, invalidate_outflow_views, validate_withdrawal_date


@dataclass
class BulkOutflowLine:
    record_id: int
    record_number: int
    bags_withdrawn: int
    rent_paise: int
    payment_paise: int
    transaction_id: int
    closed: bool
    invoice_number: str | None = None

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "record_number": self.record_number,
            "bags_withdrawn": self.bags_withdrawn,
            "rent_paise": self.rent_paise,
            "payment_paise": self.payment_paise,
            "transaction_id": self.transaction_id,
            "closed": self.closed,
            "invoice_number": self.invoice_number,
        }


@dataclass
class BulkOutflowResult:
    customer_id: int
    commodity: str
    total_bags: int
    amount_paid_now_paise: int
    lines: list[BulkOutflowLine] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.lines)

    @property
    def total_rent_paise(self) -> int:
        return sum(line.rent_paise for line in self.lines)

    @property
    def transaction_ids(self) -> list[int]:
        return [line.transaction_id for line in self.lines]

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "commodity": self.commodity,
            "total_bags": self.total_bags,
            "processed_count": self.processed_count,
            "total_rent_paise": self.total_rent_paise,
            "amount_paid_now_paise": self.amount_paid_now_paise,
            "transaction_ids": self.transaction_ids,
            "lines": [line.to_dict() for line in self.lines],
        }


def plan_bag_allocation(records: Sequence, total_bags: int) -> list[tuple]:
    """
    Greedy FIFO split of total_bags over records (already oldest-first).

    Returns [(record, bags)] for the records that give bags.
    Raises InsufficientStockError when the records cannot cover the request.
    """
    available = sum(r.bags_stored for r in records)
    if available < total_bags:
        raise InsufficientStockError(
            f"Insufficient stock: requested {total_bags} bags, only {available} available"
        )

    plan = []
    remaining = total_bags
    for record in records:
        if remaining <= 0:
            break
        take = min(record.bags_stored, remaining)
        if take > 0:
            plan.append((record, take))
            remaining -= take
    return plan


def process_bulk_outflow(
    *,
    warehouse_id: int,
    customer_id: int,
    commodity: str,
    total_bags: int,
    withdrawal_date: date,
    amount_paid_now_paise: int = 0,
    record_ids: Iterable[int] | None = None,
    final_rent_paise: int | None = None,
    send_sms: bool = False,
    today: date | None = None,
) -> BulkOutflowResult:
    """
    Withdraw total_bags of commodity across the customer's open records.

    Raises:
        ValidationError / InvalidDateRangeError: bad input
        NotFoundError: customer missing or in another warehouse
        InsufficientStockError: not enough bags (nothing changed)
        PersistenceError: the batch failed to write (nothing changed)
    """
    if not isinstance(total_bags, int) or isinstance(total_bags, bool) or total_bags <= 0:
        raise ValidationError("Total bags must be a positive whole number")
    if not commodity:
        raise ValidationError("Commodity is required")
    if amount_paid_now_paise is None or amount_paid_now_paise < 0:
        raise ValidationError("Amount paid cannot be negative")
    validate_withdrawal_date(withdrawal_date, today)
    record_ids = list(record_ids) if record_ids else None

    def _op():
        customer = db.session.get(Customer, customer_id)
        if not customer or customer.deleted_at is not None or customer.warehouse_id != warehouse_id:
            raise NotFoundError(f"Customer {customer_id} not found")

        records = storage_service.get_open_records(
            customer_id, commodity, record_ids=record_ids, for_update=True
        )
        records = [r for r in records if r.warehouse_id == warehouse_id]
        plan = plan_bag_allocation(records, total_bags)

        tier_cache = {}
        rents = []
        for record, bags in plan:
            if record.crop_id not in tier_cache:
                tier_cache[record.crop_id] = rent_service.load_rate_tiers(record.crop_id)
            quote = rent_service.calculate_rent(record, withdrawal_date, bags, tier_cache[record.crop_id])
            rents.append(quote.rent_paise)

        total_batch_rent = sum(rents)
        if final_rent_paise is not None and final_rent_paise != total_batch_rent:
            current_app.logger.warning(
                "Bulk outflow rent estimate differs: client=%s computed=%s customer=%s",
                final_rent_paise, total_batch_rent, customer_id,
            )

        payments = (
            allocation_service.split_proportionally(amount_paid_now_paise, rents)
            if amount_paid_now_paise > 0
            else [0] * len(plan)
        )

        result = BulkOutflowResult(
            customer_id=customer_id,
            commodity=commodity,
            total_bags=total_bags,
            amount_paid_now_paise=amount_paid_now_paise,
        )
        for (record, bags), rent_paise, paid in zip(plan, rents, payments):
            impact = impact_service.calculate_outflow_impact(record, bags, rent_paise, withdrawal_date)
            impact_service.apply_impact(record, impact)
            invoice_number = assign_outflow_invoice(record) if impact.is_closed else None

            if paid > 0:
                payment_service.insert_payment(
                    record,
                    amount_paise=paid,
                    payment_date=withdrawal_date,
                    payment_type=payment_service.PAYMENT_TYPE_RENT,
                    notes="Bulk outflow payment",
                )

            txn = ledger_service.append_withdrawal(
                record_id=record.id,
                bags_withdrawn=bags,
                rent_collected_paise=rent_paise,
                withdrawal_date=withdrawal_date,
                invoice_number=invoice_number,
                note="Bulk outflow",
            )
            result.lines.append(
                BulkOutflowLine(
                    record_id=record.id,
                    record_number=record.record_number,
                    bags_withdrawn=bags,
                    rent_paise=rent_paise,
                    payment_paise=paid,
                    transaction_id=txn.id,
                    closed=impact.is_closed,
                    invoice_number=invoice_number,
                )
            )
        return customer, result

    customer, result = run_atomic(_op, failure_message="Bulk outflow failed; nothing was applied")
    current_app.logger.info(
        "Bulk outflow processed: customer=%s commodity=%s bags=%s records=%s rent_paise=%s",
        customer_id, commodity, total_bags, result.processed_count, result.total_rent_paise,
    )

    notification_service.create_notification(
        warehouse_id=warehouse_id,
        title="Bulk Outflow",
        message=f"{total_bags} bags of {commodity} withdrawn by {customer.name} across {result.processed_count} record(s)",
    )
    if send_sms:
        business = current_app.config.get("BUSINESS_NAME", "")
        notification_service.notify_customer_sms(
            customer.id,
            f"Dear {customer.name},\nBulk Outflow Processed\n"
            f"Total Bags: {total_bags}\nItem: {commodity}\n"
            f"Withdrawn: {result.processed_count} record(s)\n"
            f"Rent: {notification_service.format_rupees(result.total_rent_paise)}\n"
            f"Paid: {notification_service.format_rupees(amount_paid_now_paise)}\n"
            f"Thank you.\n- {business}",
        )
    invalidate_outflow_views(customer_id, [line.record_id for line in result.lines])

    return result
