"""Tests for rate resolution."""

import logging
from decimal import Decimal
from uuid import uuid4

from installer_ops.calculators.rate_resolver import RateResolver, to_decimal
from installer_ops.calculators.types import KmRates, VehicleRateTables
from tests.factories import make_assignment, make_project, make_rates


class TestToDecimal:
    def test_coerces_stored_numbers(self):
        assert to_decimal(10) == Decimal("10")
        assert to_decimal(14.5) == Decimal("14.5")
        assert to_decimal("7") == Decimal("7")

    def test_unusable_values(self):
        assert to_decimal(None) is None
        assert to_decimal("n/a") is None


class TestRateTables:
    """Test building rate tables from global rate rows."""

    def test_default_row_wins(self):
        other = make_rates(is_default=False, vehicle_rates_domestic={"driver_per_km": 99})
        default = make_rates()

        tables = RateResolver.rate_tables_from_rows([other, default])

        assert tables.domestic == KmRates(Decimal("10"), Decimal("5"))
        assert tables.international == KmRates(Decimal("14.5"), Decimal("7"))

    def test_first_row_without_default(self):
        row = make_rates(is_default=False, vehicle_rates_international=None)

        tables = RateResolver.rate_tables_from_rows([row])

        assert tables.domestic.driver_per_km == Decimal("10")
        assert tables.international == KmRates()

    def test_no_rows_yields_zero_rates(self, caplog):
        with caplog.at_level(logging.WARNING):
            tables = RateResolver.rate_tables_from_rows([])

        assert tables == VehicleRateTables()
        assert "No global rate table" in caplog.text


class TestKmRates:
    """Test table selection by project country."""

    def test_domestic_countries(self):
        tables = VehicleRateTables(
            domestic=KmRates(Decimal("10"), Decimal("5")),
            international=KmRates(Decimal("15"), Decimal("8")),
        )

        for country in ("Česká republika", "Czech Republic", None, ""):
            project = make_project(country=country)
            assert RateResolver.km_rates_for(project, tables) == tables.domestic

        foreign = make_project(country="Slovensko")
        assert RateResolver.km_rates_for(foreign, tables) == tables.international

    def test_missing_tables(self):
        assert RateResolver.km_rates_for(make_project(), None) == KmRates()


class TestHourlyRate:
    """Test hourly rate lookup from assignments."""

    def test_rate_from_matching_assignment(self):
        project = make_project()
        worker_id = uuid4()
        assignments = [
            make_assignment(make_project(), worker_id=worker_id, hourly_rate=Decimal("999")),
            make_assignment(project, worker_id=uuid4(), hourly_rate=Decimal("111")),
            make_assignment(project, worker_id=worker_id, hourly_rate=Decimal("350")),
        ]

        rate = RateResolver.hourly_rate_for(worker_id, project.id, assignments)

        assert rate == Decimal("350")

    def test_first_matching_assignment_is_used(self):
        project = make_project()
        worker_id = uuid4()
        assignments = [
            make_assignment(project, worker_id=worker_id, hourly_rate=Decimal("300")),
            make_assignment(project, worker_id=worker_id, hourly_rate=Decimal("500")),
        ]

        assert RateResolver.hourly_rate_for(worker_id, project.id, assignments) == Decimal("300")

    def test_missing_rate_falls_back_to_zero(self, caplog):
        project = make_project()
        worker_id = uuid4()
        assignment = make_assignment(project, worker_id=worker_id, hourly_rate=None)

        with caplog.at_level(logging.WARNING):
            rate = RateResolver.hourly_rate_for(worker_id, project.id, [assignment])

        assert rate == Decimal("0")
        assert "No hourly rate" in caplog.text
