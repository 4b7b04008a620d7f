# Overview: Distribution of one lump payment across outstanding balances.

"""
Payment Allocation

WHY: A customer often pays one amount against many storage records. The
split must be deterministic and must conserve every paisa.

STRATEGIES:
- FIFO: oldest storage_start_date first; each record absorbs
  min(due, remaining); the walk stops when nothing remains.
- MANUAL: caller names the split; it must add up to the total exactly or
  it is rejected. Never truncated or redistributed.
- PROPORTIONAL: split by integer weights (rent) with the largest-remainder
  method, so the parts always sum to the amount exactly.

ZERO AMOUNT: a FIFO allocation of 0 returns no allocation rows and
unallocated 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Sequence

from ..errors import AllocationMismatchError, ValidationError


STRATEGY_FIFO = "fifo"
STRATEGY_MANUAL = "manual"
VALID_STRATEGIES = [STRATEGY_FIFO, STRATEGY_MANUAL]


@dataclass(frozen=True)
class OutstandingBalance:
    record_id: int
    record_number: str
    total_due_paise: int
    storage_start_date: date

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "record_number": self.record_number,
            "total_due_paise": self.total_due_paise,
            "storage_start_date": self.storage_start_date.isoformat(),
        }


@dataclass(frozen=True)
class Allocation:
    record_id: int
    record_number: str
    amount_paise: int
    remaining_due_paise: int

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "record_number": self.record_number,
            "amount_paise": self.amount_paise,
            "remaining_due_paise": self.remaining_due_paise,
        }


@dataclass
class AllocationResult:
    allocations: list[Allocation] = field(default_factory=list)
    unallocated_paise: int = 0

    @property
    def allocated_paise(self) -> int:
        return sum(a.amount_paise for a in self.allocations)

    def to_dict(self) -> dict:
        return {
            "allocations": [a.to_dict() for a in self.allocations],
            "allocated_paise": self.allocated_paise,
            "unallocated_paise": self.unallocated_paise,
        }


def fifo_order(balances: Iterable[OutstandingBalance]) -> list[OutstandingBalance]:
    return sorted(balances, key=lambda b: (b.storage_start_date, b.record_id))


def allocate_fifo(balances: Iterable[OutstandingBalance], total_amount_paise: int) -> AllocationResult:
    """
    Allocate a payment oldest-debt-first.

    Returns allocations (one per record that received money) and the
    unallocated remainder, which is nonzero only when the payment exceeds
    every due.
    """
    if total_amount_paise is None or total_amount_paise < 0:
        raise ValidationError("Payment amount cannot be negative")

    result = AllocationResult()
    remaining = total_amount_paise

    for balance in fifo_order(balances):
        if remaining <= 0:
            break
        if balance.total_due_paise <= 0:
            continue

        amount = min(balance.total_due_paise, remaining)
        result.allocations.append(
            Allocation(
                record_id=balance.record_id,
                record_number=balance.record_number,
                amount_paise=amount,
                remaining_due_paise=balance.total_due_paise - amount,
            )
        )
        remaining -= amount

    result.unallocated_paise = remaining
    return result


def allocate_manual(
    requested: Sequence[dict],
    total_amount_paise: int,
    balances: Optional[Iterable[OutstandingBalance]] = None,
) -> AllocationResult:
    """
    Validate a caller-supplied split.

    Args:
        requested: [{"record_id": ..., "amount_paise": ...}, ...]
        total_amount_paise: the payment being split
        balances: pending balances; when given, every record must be one of them

    Raises:
        ValidationError: malformed rows, duplicates, unknown records
        AllocationMismatchError: rows do not add up to the total
    """
    if total_amount_paise is None or total_amount_paise < 0:
        raise ValidationError("Payment amount cannot be negative")

    by_id = {b.record_id: b for b in balances} if balances is not None else None
    seen: set = set()
    allocations: list[Allocation] = []

    for row in requested or []:
        record_id = row.get("record_id")
        amount = row.get("amount_paise")
        if record_id is None:
            raise ValidationError("Each allocation needs a record_id")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError(f"Allocation for record {record_id} must be a positive amount in paise")
        if record_id in seen:
            raise ValidationError(f"Record {record_id} appears more than once in the allocation")
        seen.add(record_id)

        balance = None
        if by_id is not None:
            balance = by_id.get(record_id)
            if balance is None:
                raise ValidationError(f"Record {record_id} has no pending dues for this customer")

        due = balance.total_due_paise if balance else amount
        allocations.append(
            Allocation(
                record_id=record_id,
                record_number=balance.record_number if balance else str(record_id),
                amount_paise=amount,
                remaining_due_paise=max(0, due - amount),
            )
        )

    allocated = sum(a.amount_paise for a in allocations)
    if allocated != total_amount_paise:
        raise AllocationMismatchError(
            f"Allocation sum ({allocated} paise) does not match total payment ({total_amount_paise} paise)"
        )

    return AllocationResult(allocations=allocations, unallocated_paise=0)


def split_proportionally(amount_paise: int, weights: Sequence[int]) -> list[int]:
    """
    Split amount_paise by integer weights; parts always sum to amount_paise.

    Largest-remainder method: every part gets floor(amount * w / W), then the
    leftover paise go one each to the largest fractional remainders (earlier
    positions win ties). All-zero weights put everything on the first part.
    """
    if amount_paise < 0:
        raise ValidationError("Amount cannot be negative")
    if any(w < 0 for w in weights):
        raise ValidationError("Weights cannot be negative")
    if not weights:
        if amount_paise:
            raise ValidationError("Nothing to split the amount across")
        return []

    total_weight = sum(weights)
    if total_weight == 0:
        return [amount_paise] + [0] * (len(weights) - 1)

    parts = []
    remainders = []
    for idx, weight in enumerate(weights):
        quotient, remainder = divmod(amount_paise * weight, total_weight)
        parts.append(quotient)
        remainders.append((remainder, idx))

    leftover = amount_paise - sum(parts)
    for _, idx in sorted(remainders, key=lambda r: (-r[0], r[1]))[:leftover]:
        parts[idx] += 1

    return parts
