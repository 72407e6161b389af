"""Tests for invoice line item builder."""

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from installer_ops.calculators.line_builder import (
    LineItemBuilder,
    OtherCostsCommentRequiredError,
    item_value,
)
from installer_ops.calculators.types import LineKind


class TestLineItemBuilder:
    """Test line item builder functionality."""

    def test_round_to_cents(self):
        """Test rounding to 2 decimal places."""
        assert LineItemBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")

        # Half-up rounding
        assert LineItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert LineItemBuilder.round_to_cents(Decimal("10.135")) == Decimal("10.14")

    def test_create_labor_line(self):
        worker_id = uuid4()
        line = LineItemBuilder.create_labor_line(
            worker_id=worker_id,
            worker_name="Jan Novák",
            hours=Decimal("7.5"),
            hourly_rate=Decimal("333.33"),
        )

        assert line.line_kind == LineKind.LABOR
        assert line.description == "Cena za dílo"
        assert line.unit == "hod"
        assert line.quantity == Decimal("7.5")
        assert line.unit_price == Decimal("333.33")
        # 2499.975 rounds half up
        assert line.total_price == Decimal("2499.98")
        assert line.worker_id == worker_id

    def test_transport_lines(self):
        driver = LineItemBuilder.create_driver_transport_line(
            uuid4(), "Jan Novák", Decimal("250"), Decimal("12")
        )
        crew = LineItemBuilder.create_crew_transport_line(
            uuid4(), "Jan Novák", Decimal("250"), Decimal("6")
        )

        assert (driver.description, driver.unit) == ("Přeprava - řidič", "km")
        assert driver.total_price == Decimal("3000.00")
        assert (crew.description, crew.unit) == ("Přeprava - posádka", "km")
        assert crew.total_price == Decimal("1500.00")

    def test_to_item_dict_carries_line_kind(self):
        line = LineItemBuilder.create_labor_line(uuid4(), "Jan", Decimal("1"), Decimal("100"))

        item = line.to_item_dict()

        assert item["line_kind"] == "labor"
        assert item["total_price"] == Decimal("100.00")


class TestOtherCosts:
    """Test the manually entered other-costs line."""

    def test_zero_amount_creates_no_line(self):
        assert LineItemBuilder.create_other_costs_line(None, "Jan", Decimal("0"), None) is None

    def test_amount_requires_comment(self):
        with pytest.raises(OtherCostsCommentRequiredError):
            LineItemBuilder.create_other_costs_line(None, "Jan", Decimal("500"), "   ")

    def test_negative_amount_is_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            LineItemBuilder.create_other_costs_line(None, "Jan", Decimal("-500"), "Sleva")

    def test_other_costs_line(self):
        line = LineItemBuilder.create_other_costs_line(
            None, "Jan", Decimal("500"), "  Parkovné  "
        )

        assert line.line_kind == LineKind.OTHER
        assert line.quantity == Decimal("1")
        assert line.unit == "ks"
        assert line.total_price == Decimal("500.00")
        assert line.comment == "Parkovné"


class TestClassifyItem:
    """Test classification of stored items."""

    def test_line_kind_wins(self):
        item = {"line_kind": "crew_transport", "unit": "hod", "description": "Cena za dílo"}

        assert LineItemBuilder.classify_item(item) == LineKind.CREW_TRANSPORT

    @pytest.mark.parametrize(
        ("unit", "description", "expected"),
        [
            ("hod", "Cena za dílo", LineKind.LABOR),
            ("km", "Přeprava - řidič", LineKind.DRIVER_TRANSPORT),
            ("km", "Přeprava - posádka", LineKind.CREW_TRANSPORT),
            ("ks", "Cena za dílo", None),
            ("hod", "cena za dílo", None),
        ],
    )
    def test_legacy_items(self, unit, description, expected):
        item = SimpleNamespace(line_kind=None, unit=unit, description=description)

        assert LineItemBuilder.classify_item(item) == expected

    def test_unknown_line_kind_is_unclassified(self):
        assert LineItemBuilder.classify_item({"line_kind": "bonus"}) is None

    def test_item_value_reads_dicts_and_objects(self):
        assert item_value({"unit": "km"}, "unit") == "km"
        assert item_value(SimpleNamespace(unit="km"), "unit") == "km"
        assert item_value(SimpleNamespace(), "unit") is None


class TestTotals:
    """Test invoice totals and numbering."""

    def test_totals_without_vat(self):
        lines = [{"total_price": Decimal("2400.00")}, {"total_price": Decimal("900.00")}]

        totals = LineItemBuilder.calculate_totals(lines)

        assert totals.total_amount == Decimal("3300.00")
        assert totals.vat_amount == Decimal("0.00")
        assert totals.total_with_vat == Decimal("3300.00")

    def test_totals_with_vat(self):
        totals = LineItemBuilder.calculate_totals(
            [{"total_price": Decimal("100.05")}], vat_rate=Decimal("0.21")
        )

        # 21.0105 rounds to 21.01
        assert totals.vat_amount == Decimal("21.01")
        assert totals.total_with_vat == Decimal("121.06")

    def test_invoice_number_from_project_number(self):
        project = SimpleNamespace(project_number="P7", name="Ignored")

        assert LineItemBuilder.next_invoice_number(project, 0) == "P7_0001"
        assert LineItemBuilder.next_invoice_number(project, 11) == "P7_0012"

    def test_invoice_number_from_name_prefix(self):
        project = SimpleNamespace(project_number=None, name="P12_Hala Brno")

        assert LineItemBuilder.next_invoice_number(project, 2) == "P12_0003"
        assert LineItemBuilder.invoice_number_prefix(project) == "P12"

    def test_invoice_number_fallback(self):
        project = SimpleNamespace(project_number=None, name="")

        assert LineItemBuilder.next_invoice_number(project, 0) == "PROJ_0001"
