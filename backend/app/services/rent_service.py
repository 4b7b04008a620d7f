# Overview: Rent calculation; pure functions over a record, its crop's rate tiers and a date.

"""
Rent Calculator

WHY: Rent is the one number every outflow bills, so it must be deterministic
and identical wherever it is computed (single outflow, bulk outflow, UI
estimate).

TIER POLICY (crop configuration, not code):
- days_stored = whole days from storage_start_date to as_of
- tiers are ordered by max_days; the first tier with days_stored <= max_days
  applies for one cycle (boundary is inclusive: 182 days with a 182-day tier
  is still that tier)
- beyond the longest tier, the longest tier repeats: one cycle per started
  max_days period

rent = bags x rate x cycles, in integer paise. No floating point, so no
rounding step exists.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from ..errors import InvalidDateRangeError, OverdraftAttemptError, ValidationError
from ..extensions import db
from ..models import CropRateTier


@dataclass(frozen=True)
class RateTier:
    label: str
    max_days: int
    rate_paise: int


@dataclass(frozen=True)
class RentQuote:
    rent_paise: int
    rate_paise: int
    tier: str
    days_stored: int
    cycles: int

    def to_dict(self) -> dict:
        return {
            "rent_paise": self.rent_paise,
            "rate_paise": self.rate_paise,
            "tier": self.tier,
            "days_stored": self.days_stored,
            "cycles": self.cycles,
        }


def _normalize_tiers(tiers: Iterable) -> list[RateTier]:
    normalized = [
        t if isinstance(t, RateTier) else RateTier(label=t.label, max_days=t.max_days, rate_paise=t.rate_paise)
        for t in tiers
    ]
    if not normalized:
        raise ValidationError("No rent rate tiers configured for this crop")
    for t in normalized:
        if t.max_days <= 0:
            raise ValidationError(f"Rate tier {t.label!r} must cover at least one day")
        if t.rate_paise < 0:
            raise ValidationError(f"Rate tier {t.label!r} has a negative rate")
    return sorted(normalized, key=lambda t: t.max_days)


def select_rate_tier(tiers: Iterable, days_stored: int) -> tuple[RateTier, int]:
    """
    Pick the tier for a storage duration.

    Returns (tier, cycles). cycles is 1 inside the configured tiers and grows
    once days_stored passes the longest tier.
    """
    if days_stored < 0:
        raise InvalidDateRangeError("Storage duration cannot be negative")

    ordered = _normalize_tiers(tiers)
    for tier in ordered:
        if days_stored <= tier.max_days:
            return tier, 1

    longest = ordered[-1]
    cycles = -(-days_stored // longest.max_days)  # ceiling division
    return longest, cycles


def calculate_rent(record, as_of: date, bags_quantity: int, tiers: Sequence) -> RentQuote:
    """
    Rent owed for withdrawing bags_quantity bags of record on as_of.

    Args:
        record: anything with storage_start_date and bags_stored
        as_of: withdrawal / valuation date
        bags_quantity: bags being billed (0 bills nothing)
        tiers: the crop's rate tiers (RateTier or CropRateTier rows)

    Raises:
        ValidationError: negative quantity or unusable tiers
        InvalidDateRangeError: as_of before the storage start date
        OverdraftAttemptError: more bags than the record stores
    """
    if bags_quantity is None or bags_quantity < 0:
        raise ValidationError("Bag quantity cannot be negative")
    if as_of < record.storage_start_date:
        raise InvalidDateRangeError("Date cannot be before the storage start date")
    if bags_quantity > record.bags_stored:
        raise OverdraftAttemptError(
            f"Cannot bill {bags_quantity} bags; only {record.bags_stored} are in storage"
        )

    days_stored = (as_of - record.storage_start_date).days
    tier, cycles = select_rate_tier(tiers, days_stored)

    return RentQuote(
        rent_paise=bags_quantity * tier.rate_paise * cycles,
        rate_paise=tier.rate_paise,
        tier=tier.label,
        days_stored=days_stored,
        cycles=cycles,
    )


def load_rate_tiers(crop_id: int) -> list[RateTier]:
    """Read a crop's rent table from the database."""
    rows = (
        db.session.query(CropRateTier)
        .filter_by(crop_id=crop_id)
        .order_by(CropRateTier.max_days)
        .all()
    )
    return [RateTier(label=r.label, max_days=r.max_days, rate_paise=r.rate_paise) for r in rows]
