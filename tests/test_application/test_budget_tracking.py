"""
Tests for ledger actuals, variance and the budget vs actual tracking view
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from budgetlock.application.actuals import LedgerReader, VarianceFigures, sum_figures, compute_variance
from budgetlock.application.distribution import DistributeYearlyBudgetUseCase
from budgetlock.application.tracking import BudgetTrackingService
from budgetlock.domain.errors import InvalidMonth, InvalidQuarter, ExternalServiceUnavailable


class TestVariance:
    def test_identity(self):
        f = compute_variance(Decimal("100"), Decimal("120"))

        assert f.variance == f.budget - f.actual == Decimal("-20")
        assert f.is_over_budget

    def test_sum_sums_components(self):
        total = sum_figures([
            VarianceFigures(Decimal("100"), Decimal("50")),
            VarianceFigures(Decimal("10"), Decimal("30")),
        ])

        assert total.budget == Decimal("110")
        assert total.actual == Decimal("80")
        assert total.variance == Decimal("30")

    def test_empty_sum(self):
        assert sum_figures([]) == VarianceFigures()


class TestLedgerActuals:
    def test_bucketed_by_transaction_month(self, db_session, sample_account_id, budget_tree, add_transaction):
        add_transaction("EXPENSE", "-40.00", budget_tree["rent"], date(2026, 3, 1))
        add_transaction("EXPENSE", "60.00", budget_tree["rent"], date(2026, 3, 31))

        actuals = LedgerReader(db_session).get_actuals(sample_account_id, 2026)

        assert actuals[budget_tree["rent"]] == {3: Decimal("100.00")}

    def test_payable_due_date_wins(self, db_session, sample_account_id, budget_tree, add_transaction):
        # paid late in April, planned for March
        add_transaction("EXPENSE", "75.00", budget_tree["rent"], date(2026, 4, 12), payable_due_date=date(2026, 3, 15))

        actuals = LedgerReader(db_session).get_actuals(sample_account_id, 2026)

        assert actuals[budget_tree["rent"]] == {3: Decimal("75.00")}

    def test_due_date_in_previous_year_is_excluded(self, db_session, sample_account_id, budget_tree, add_transaction):
        add_transaction("EXPENSE", "75.00", budget_tree["rent"], date(2026, 1, 5), payable_due_date=date(2025, 12, 20))

        assert LedgerReader(db_session).get_actuals(sample_account_id, 2026) == {}
        assert LedgerReader(db_session).get_actuals(sample_account_id, 2025) == {
            budget_tree["rent"]: {12: Decimal("75.00")}
        }

    def test_month_filter(self, db_session, sample_account_id, budget_tree, add_transaction):
        add_transaction("EXPENSE", "10.00", budget_tree["rent"], date(2026, 1, 1))
        add_transaction("EXPENSE", "20.00", budget_tree["rent"], date(2026, 2, 1))

        actuals = LedgerReader(db_session).get_actuals(sample_account_id, 2026, [2])

        assert actuals[budget_tree["rent"]] == {2: Decimal("20.00")}

    def test_invalid_month_filter(self, db_session, sample_account_id):
        with pytest.raises(InvalidMonth):
            LedgerReader(db_session).get_actuals(sample_account_id, 2026, [13])

    def test_reference_split_by_operation_type(self, db_session, sample_account_id, reference_ledger):
        reader = LedgerReader(db_session)

        income = reader.get_reference(sample_account_id, 2025, "INCOME")
        expense = reader.get_reference(sample_account_id, 2025, "EXPENSE")

        assert set(income) == {reference_ledger["product"]}
        assert expense[reference_ledger["rent"]] == {2: Decimal("250.00")}

    def test_database_failure_is_external_error(self, sample_account_id):
        class BrokenQuery:
            def all(self):
                raise OperationalError("SELECT", {}, Exception("connection refused"))

        reader = LedgerReader(db=None)
        with pytest.raises(ExternalServiceUnavailable, match="connection refused"):
            reader._fetch("Ledger actuals source", BrokenQuery())


@pytest.fixture
def tracked(db_session, sample_account_id, scenario, budget_tree, add_transaction):
    use_case = DistributeYearlyBudgetUseCase(db_session)
    use_case.execute(sample_account_id, scenario.id, budget_tree["product"], "1200")
    use_case.execute(sample_account_id, scenario.id, budget_tree["rent"], "1200")
    add_transaction("INCOME", "150.00", budget_tree["product"], date(2026, 4, 2))
    add_transaction("EXPENSE", "80.00", budget_tree["rent"], date(2026, 4, 3))
    add_transaction("EXPENSE", "130.00", budget_tree["rent"], date(2026, 6, 30))
    return scenario


class TestTrackingView:
    def test_quarter_view(self, db_session, sample_account_id, tracked, budget_tree):
        view = BudgetTrackingService(db_session).get_quarter_view(sample_account_id, tracked.id, 2)

        assert view.months == (4, 5, 6)
        rent = view.classes[1].category_groups[1].sub_categories[0]
        assert rent.columns[4] == VarianceFigures(Decimal("100.00"), Decimal("80.00"))
        assert rent.columns[6].variance == Decimal("-30.00")
        assert rent.total.budget == Decimal("300.00")
        assert rent.total.actual == Decimal("210.00")

    def test_single_month_view(self, db_session, sample_account_id, tracked):
        view = BudgetTrackingService(db_session).get_quarter_view(sample_account_id, tracked.id, 2, 3)

        assert view.months == (6,)
        assert view.totals.expenses_total.actual == Decimal("130.00")

    def test_totals(self, db_session, sample_account_id, tracked):
        totals = BudgetTrackingService(db_session).get_quarter_view(sample_account_id, tracked.id, 2).totals

        assert totals.revenue_total == VarianceFigures(Decimal("300.00"), Decimal("150.00"))
        assert totals.expenses_total == VarianceFigures(Decimal("300.00"), Decimal("210.00"))
        assert totals.net_total.budget == Decimal("0.00")
        assert totals.net_total.actual == Decimal("-60.00")
        assert totals.net[4].actual == Decimal("70.00")

    def test_group_and_class_columns_sum_leaves(self, db_session, sample_account_id, tracked):
        view = BudgetTrackingService(db_session).get_quarter_view(sample_account_id, tracked.id, 2)

        for cls in view.classes:
            for m in view.months:
                leaves = [s.columns[m] for g in cls.category_groups for s in g.sub_categories]
                assert cls.columns[m] == sum_figures(leaves)

    def test_year_view(self, db_session, sample_account_id, tracked):
        view = BudgetTrackingService(db_session).get_year_view(sample_account_id, tracked.id)

        assert view.quarter is None
        assert len(view.months) == 12
        assert view.totals.revenue_total.budget == Decimal("1200.00")

    def test_invalid_month_in_quarter(self, db_session, sample_account_id, tracked):
        with pytest.raises(InvalidMonth):
            BudgetTrackingService(db_session).get_quarter_view(sample_account_id, tracked.id, 2, 4)

    def test_invalid_quarter(self, db_session, sample_account_id, tracked):
        with pytest.raises(InvalidQuarter):
            BudgetTrackingService(db_session).get_quarter_view(sample_account_id, tracked.id, 0)
