"""Monthly and yearly roll-ups of projection timelines."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List

from .data_models import Bucket, TimelineRow
from .utils import ZERO, round2

MODES = ("monthly", "yearly")


def aggregate_timeline(timeline: Iterable[TimelineRow], mode: str = "monthly") -> List[Bucket]:
    """Group timeline rows into ``YYYY-MM`` or ``YYYY`` buckets.

    Bucket amounts are differences of the cumulative ``paid``,
    ``interest_paid`` and ``principal_paid`` columns against the last value
    seen before the bucket, so they add up exactly to the timeline totals.
    A bucket's balance is the balance of its last row.
    """
    if mode not in MODES:
        raise ValueError(f"Aggregation mode must be one of {MODES}; got {mode!r}")
    width = 4 if mode == "yearly" else 7
    buckets: Dict[str, Bucket] = {}
    last_paid = last_interest = last_principal = ZERO

    for row in timeline:
        if row is None or row.date is None:
            continue
        key = row.date.isoformat()[:width]
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = Bucket(period=key, paid=ZERO, interest=ZERO, principal=ZERO, balance=row.balance)

        bucket.paid = round2(bucket.paid + round2(row.paid - last_paid))
        bucket.interest = round2(bucket.interest + round2(row.interest_paid - last_interest))
        bucket.principal = round2(bucket.principal + round2(row.principal_paid - last_principal))
        bucket.balance = row.balance

        last_paid = row.paid
        last_interest = row.interest_paid
        last_principal = row.principal_paid

    return sorted(buckets.values(), key=lambda b: b.period)


def format_duration(days: float) -> str:
    """Human readable span such as ``"12 days"``, ``"5 mos"`` or ``"2 yrs 3 mos"``."""
    if days is None or days <= 0:
        return ""
    if days < 30:
        d = _round_int(days)
        return f"{d} day" + ("" if d == 1 else "s")
    months = _round_int(Decimal(str(days)) / 30)
    if months < 12:
        return f"{months} mo" + ("" if months == 1 else "s")
    years, rem = divmod(months, 12)
    parts = [f"{years} yr" + ("" if years == 1 else "s")]
    if rem:
        parts.append(f"{rem} mo" + ("" if rem == 1 else "s"))
    return " ".join(parts)


def _round_int(value: Any) -> int:
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))
