"""Currency conversion utilities.

Internal storage unit: paise (smallest INR unit, 100 paise = ₹1).
API input for humans may be rupees; everything persisted is paise.

Conversion chain
----------------
Rupees × 100 → Paise
Paise  ÷ 100 → Rupees
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

PAISE_PER_RUPEE: int = 100
BASIS_POINTS: int = 10_000


# ─── conversion helpers ───────────────────────────────────────────────────────


def rupees_to_paise(rupees: Decimal | int | str) -> int:
    """Convert rupees to paise (round half-up). ₹1 = 100 paise."""
    return round_to_paise(Decimal(str(rupees)) * PAISE_PER_RUPEE)


def paise_to_rupees(paise: int) -> Decimal:
    """Convert paise to rupees. 100 paise = ₹1."""
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(Decimal("0.01"))


def round_to_paise(amount: Decimal) -> int:
    """Round a fractional paise amount to a whole paise, half-up."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apply_basis_points(amount: int, bps: int) -> int:
    """Return ``amount`` × ``bps`` / 10,000 in whole paise. 1500 bps = 15 %."""
    return round_to_paise(Decimal(amount) * Decimal(bps) / BASIS_POINTS)


def format_inr(paise: int) -> str:
    """Human readable amount for log lines and error messages: ₹1,234.50."""
    return f"₹{paise_to_rupees(paise):,}"
