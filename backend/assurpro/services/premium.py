# backend/assurpro/services/premium.py
"""
Premium breakdown for motor policies.

Every figure printed on a policy and on the settlement statement
("bordereau") is derived from the single net premium. The tax line is the
residual of the gross premium so that, after rounding,

    gross_premium == net_premium + fixed_fee + tax + levy

holds line by line and therefore for the column totals as well.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

FIXED_FEE = Decimal("3000")
FGA_LEVY_RATE = Decimal("0.025")
GROSS_MULTIPLIER = Decimal("1.14")
COMMISSION_RATE = Decimal("0.25")

_CENT = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their shortest repr instead of
    # their binary expansion
    return Decimal(str(value))


@dataclass(frozen=True)
class PremiumBreakdown:
    net_premium: Decimal
    fixed_fee: Decimal
    tax: Decimal
    levy: Decimal
    gross_premium: Decimal
    commission: Decimal
    net_payable: Decimal


def compute_breakdown(net_premium: Decimal | int | float | str) -> PremiumBreakdown:
    """
    Itemise a net premium.

    The caller is responsible for rejecting non-positive premiums; the
    arithmetic is still carried out for them but the figures are meaningless.
    """
    net = _to_decimal(net_premium)

    levy = round2(net * FGA_LEVY_RATE)
    gross = round2((net + FIXED_FEE) * GROSS_MULTIPLIER + levy)
    tax = round2(gross - net - FIXED_FEE - levy)
    commission = round2(net * COMMISSION_RATE)
    net_payable = round2(net - commission + FIXED_FEE - (tax + levy) / 2)

    return PremiumBreakdown(
        net_premium=net,
        fixed_fee=FIXED_FEE,
        tax=tax,
        levy=levy,
        gross_premium=gross,
        commission=commission,
        net_payable=net_payable,
    )


# ---------------------------------------------------------------------------
# Bordereau (settlement statement)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BordereauInput:
    numero_police: str
    client_nom: str
    immatriculation: str
    date_effet: date
    date_echeance: date
    net_premium: Decimal | int | float | str


@dataclass(frozen=True)
class BordereauLine:
    index: int
    numero_police: str
    client_nom: str
    immatriculation: str
    date_effet: date
    date_echeance: date
    breakdown: PremiumBreakdown


@dataclass
class BordereauTotals:
    net_premium: Decimal = Decimal("0.00")
    fixed_fee: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    levy: Decimal = Decimal("0.00")
    gross_premium: Decimal = Decimal("0.00")
    commission: Decimal = Decimal("0.00")
    net_payable: Decimal = Decimal("0.00")

    def add(self, b: PremiumBreakdown) -> None:
        self.net_premium += b.net_premium
        self.fixed_fee += b.fixed_fee
        self.tax += b.tax
        self.levy += b.levy
        self.gross_premium += b.gross_premium
        self.commission += b.commission
        self.net_payable += b.net_payable


@dataclass
class Bordereau:
    lines: List[BordereauLine] = field(default_factory=list)
    totals: BordereauTotals = field(default_factory=BordereauTotals)
    code: Optional[str] = None


def build_bordereau(entries: Iterable[BordereauInput]) -> Bordereau:
    """
    Build the settlement statement for a set of policies.

    Lines are numbered from 1 in input order; entries without a positive net
    premium are left out. The statement code is the first six characters of
    the first policy number.
    """
    bordereau = Bordereau()
    for entry in entries:
        net = _to_decimal(entry.net_premium)
        if net <= 0:
            continue
        breakdown = compute_breakdown(net)
        bordereau.lines.append(
            BordereauLine(
                index=len(bordereau.lines) + 1,
                numero_police=entry.numero_police,
                client_nom=entry.client_nom,
                immatriculation=entry.immatriculation,
                date_effet=entry.date_effet,
                date_echeance=entry.date_echeance,
                breakdown=breakdown,
            )
        )
        bordereau.totals.add(breakdown)

    if bordereau.lines:
        bordereau.code = bordereau.lines[0].numero_police[:6]
    return bordereau
