"""
Tests for the premium breakdown and the settlement statement (bordereau).
"""
from datetime import date
from decimal import Decimal

import pytest

from assurpro.services.premium import (
    BordereauInput,
    FIXED_FEE,
    build_bordereau,
    compute_breakdown,
    round2,
)


class TestComputeBreakdown:
    """Tests for compute_breakdown."""

    def test_known_vector(self):
        """A net premium of 100 000 itemises to the published figures."""
        b = compute_breakdown(100000)
        assert b.net_premium == Decimal("100000")
        assert b.fixed_fee == Decimal("3000")
        assert b.levy == Decimal("2500.00")
        assert b.gross_premium == Decimal("119920.00")
        assert b.tax == Decimal("14420.00")
        assert b.commission == Decimal("25000.00")
        assert b.net_payable == Decimal("69540.00")

    @pytest.mark.parametrize(
        "net",
        ["1", "0.01", "33.33", "12345.67", "99999.99", "250000", "1000000.05", 7777.77],
    )
    def test_gross_reconciles_with_components(self, net):
        """Tax is residual, so the components always add back up to the gross."""
        b = compute_breakdown(net)
        assert round2(b.net_premium + b.fixed_fee + b.tax + b.levy) == b.gross_premium

    def test_deterministic(self):
        """Same input, same output."""
        assert compute_breakdown("45678.90") == compute_breakdown("45678.90")

    def test_float_input_uses_shortest_repr(self):
        """Floats are read through str(), not their binary expansion."""
        assert compute_breakdown(0.1).net_premium == Decimal("0.1")

    def test_round_half_up(self):
        """Half-cents round away from zero."""
        assert round2(Decimal("0.125")) == Decimal("0.13")
        assert round2(Decimal("2.675")) == Decimal("2.68")


class TestBuildBordereau:
    """Tests for build_bordereau."""

    def _entry(self, numero, net, nom="Client"):
        return BordereauInput(
            numero_police=numero,
            client_nom=nom,
            immatriculation="AB-123-CD",
            date_effet=date(2026, 1, 1),
            date_echeance=date(2026, 12, 31),
            net_premium=net,
        )

    def test_lines_are_numbered_and_totalled(self):
        """Totals are the column sums of the line breakdowns."""
        bordereau = build_bordereau(
            [self._entry("POL123456", "100000"), self._entry("POL999", "50000.50")]
        )
        assert [line.index for line in bordereau.lines] == [1, 2]

        first, second = (line.breakdown for line in bordereau.lines)
        totals = bordereau.totals
        assert totals.net_premium == first.net_premium + second.net_premium
        assert totals.fixed_fee == FIXED_FEE * 2
        assert totals.tax == first.tax + second.tax
        assert totals.levy == first.levy + second.levy
        assert totals.gross_premium == first.gross_premium + second.gross_premium
        assert totals.commission == first.commission + second.commission
        assert totals.net_payable == first.net_payable + second.net_payable

    def test_totals_reconcile(self):
        """The reconciling identity also holds for the totals row."""
        bordereau = build_bordereau(
            [self._entry(f"P{i:05d}", f"{1000 * i + 0.37:.2f}") for i in range(1, 8)]
        )
        t = bordereau.totals
        assert t.net_premium + t.fixed_fee + t.tax + t.levy == t.gross_premium

    def test_non_positive_premiums_are_skipped(self):
        """Zero or negative premiums are left off and do not consume an index."""
        bordereau = build_bordereau(
            [self._entry("ZERO01", "0"), self._entry("NEG001", "-5"), self._entry("KEEP01", "2000")]
        )
        assert len(bordereau.lines) == 1
        assert bordereau.lines[0].index == 1
        assert bordereau.lines[0].numero_police == "KEEP01"

    def test_code_is_prefix_of_first_policy(self):
        bordereau = build_bordereau([self._entry("ABCDEFGHIJ", "100")])
        assert bordereau.code == "ABCDEF"

    def test_empty(self):
        bordereau = build_bordereau([])
        assert bordereau.lines == []
        assert bordereau.code is None
        assert bordereau.totals.gross_premium == Decimal("0.00")
