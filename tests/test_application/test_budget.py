"""
Tests for budget use cases: month provisioning, allocation writes, copy forward.
"""
import pytest
from datetime import date
from decimal import Decimal

from app.infrastructure.db.models import Budget, CategoryAllocation
from app.application.budget import (
    EnsureBudgetUseCase, SetAllocationUseCase, CopyPreviousMonthUseCase,
    BudgetValidationError, BudgetNotFoundError, CategoryNotFoundError,
    parse_allocation_amount, validate_period,
)
from app.application.budget_engine import BudgetingEngine
import app.application.budget as budget_module


def _allocations(db_session, budget_id):
    return {
        a.category_id: a.budgeted_amount
        for a in db_session.query(CategoryAllocation).filter(CategoryAllocation.budget_id == budget_id).all()
    }


# ============================================================================
# Validation helpers
# ============================================================================


class TestValidation:
    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_month_out_of_range(self, month):
        with pytest.raises(BudgetValidationError, match="month"):
            validate_period(month, 2026)

    @pytest.mark.parametrize("year", [1999, 2101])
    def test_year_out_of_range(self, year):
        with pytest.raises(BudgetValidationError, match="year"):
            validate_period(1, year)

    def test_valid_period(self):
        validate_period(12, 2100)
        validate_period(1, 2000)

    def test_amount_forms(self):
        assert parse_allocation_amount("12.50") == Decimal("12.50")
        assert parse_allocation_amount("12,5") == Decimal("12.5")
        assert parse_allocation_amount(7) == Decimal("7")
        assert parse_allocation_amount(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("bad", ["abc", "", None, True, "1.234"])
    def test_amount_rejected(self, bad):
        with pytest.raises(BudgetValidationError):
            parse_allocation_amount(bad)

    def test_negative_amount_rejected(self):
        with pytest.raises(BudgetValidationError, match=">= 0"):
            parse_allocation_amount("-5")


# ============================================================================
# EnsureBudgetUseCase
# ============================================================================


class TestEnsureBudget:
    def test_creates_month_with_zero_allocations(self, db_session, ledger):
        budget, created = EnsureBudgetUseCase(db_session).execute(ledger.user_id, 3, 2026)

        assert created is True
        assert (budget.user_id, budget.month, budget.year) == (ledger.user_id, 3, 2026)
        allocations = _allocations(db_session, budget.id)
        # every visible category, hidden one excluded
        assert set(allocations) == {ledger.groceries, ledger.savings, ledger.rent, ledger.visa_payment}
        assert all(v == Decimal("0") for v in allocations.values())

    def test_idempotent(self, db_session, ledger):
        first, created_first = EnsureBudgetUseCase(db_session).execute(ledger.user_id, 3, 2026)
        second, created_second = EnsureBudgetUseCase(db_session).execute(ledger.user_id, 3, 2026)

        assert created_first is True
        assert created_second is False
        assert first.id == second.id
        assert db_session.query(Budget).filter(Budget.user_id == ledger.user_id).count() == 1

    def test_invalid_month(self, db_session, ledger):
        with pytest.raises(BudgetValidationError):
            EnsureBudgetUseCase(db_session).execute(ledger.user_id, 13, 2026)
        assert db_session.query(Budget).count() == 0

    def test_new_month_is_readable(self, db_session, ledger):
        EnsureBudgetUseCase(db_session).execute(ledger.user_id, 3, 2026)

        summary = BudgetingEngine(db_session).get_budget_summary(ledger.user_id, 3, 2026)
        assert [row.name for row in summary.categories] == ["Groceries", "Savings", "Rent", "Visa Payment"]
        assert summary.to_be_budgeted == Decimal("0")


# ============================================================================
# SetAllocationUseCase
# ============================================================================


class TestSetAllocation:
    def test_creates_allocation(self, db_session, ledger, make_budget):
        budget = make_budget(2026, 3)

        allocation = SetAllocationUseCase(db_session).execute(
            ledger.user_id, budget.id, ledger.groceries, "200",
        )

        assert allocation.budgeted_amount == Decimal("200")
        assert _allocations(db_session, budget.id) == {ledger.groceries: Decimal("200")}

    def test_overwrites_single_row(self, db_session, ledger, make_budget):
        budget = make_budget(2026, 3, {ledger.groceries: 200})
        use_case = SetAllocationUseCase(db_session)

        use_case.execute(ledger.user_id, budget.id, ledger.groceries, "75.25")
        use_case.execute(ledger.user_id, budget.id, ledger.groceries, 80)

        rows = db_session.query(CategoryAllocation).filter(
            CategoryAllocation.budget_id == budget.id,
            CategoryAllocation.category_id == ledger.groceries,
        ).all()
        assert len(rows) == 1
        assert rows[0].budgeted_amount == Decimal("80")

    def test_zero_is_allowed(self, db_session, ledger, make_budget):
        budget = make_budget(2026, 3, {ledger.groceries: 200})

        SetAllocationUseCase(db_session).execute(ledger.user_id, budget.id, ledger.groceries, "0")

        assert _allocations(db_session, budget.id)[ledger.groceries] == Decimal("0")

    def test_negative_rejected(self, db_session, ledger, make_budget):
        budget = make_budget(2026, 3, {ledger.groceries: 200})

        with pytest.raises(BudgetValidationError):
            SetAllocationUseCase(db_session).execute(ledger.user_id, budget.id, ledger.groceries, "-1")
        assert _allocations(db_session, budget.id)[ledger.groceries] == Decimal("200")

    def test_non_numeric_rejected(self, db_session, ledger, make_budget):
        budget = make_budget(2026, 3)

        with pytest.raises(BudgetValidationError):
            SetAllocationUseCase(db_session).execute(ledger.user_id, budget.id, ledger.groceries, "lots")

    def test_foreign_budget(self, db_session, ledger, make_budget):
        foreign = make_budget(2026, 3, user_id=2)

        with pytest.raises(BudgetNotFoundError):
            SetAllocationUseCase(db_session).execute(ledger.user_id, foreign.id, ledger.groceries, "10")

    def test_unknown_budget(self, db_session, ledger):
        with pytest.raises(BudgetNotFoundError):
            SetAllocationUseCase(db_session).execute(ledger.user_id, 999, ledger.groceries, "10")

    def test_unknown_category(self, db_session, ledger, make_budget):
        budget = make_budget(2026, 3)

        with pytest.raises(CategoryNotFoundError):
            SetAllocationUseCase(db_session).execute(ledger.user_id, budget.id, 999, "10")

    def test_reflected_in_next_read(self, db_session, ledger, make_budget, make_tx):
        budget = make_budget(2026, 3, {ledger.groceries: 0})
        make_tx(ledger.checking, "500", date(2026, 3, 1), type="income")
        engine = BudgetingEngine(db_session)
        assert engine.compute_tbb(ledger.user_id, 3, 2026) == Decimal("500")

        SetAllocationUseCase(db_session).execute(ledger.user_id, budget.id, ledger.groceries, "120")

        assert engine.compute_tbb(ledger.user_id, 3, 2026) == Decimal("380")
        assert engine.compute_available(ledger.groceries, 3, 2026, ledger.user_id) == Decimal("120")


# ============================================================================
# CopyPreviousMonthUseCase
# ============================================================================


class TestCopyPreviousMonth:
    def test_copies_into_empty_month(self, db_session, ledger, make_budget):
        make_budget(2026, 2, {ledger.groceries: 200, ledger.rent: 900})
        target = make_budget(2026, 3)

        CopyPreviousMonthUseCase(db_session).execute(ledger.user_id, target.id)

        assert _allocations(db_session, target.id) == {
            ledger.groceries: Decimal("200"),
            ledger.rent: Decimal("900"),
        }

    def test_overwrites_and_leaves_others(self, db_session, ledger, make_budget):
        make_budget(2026, 2, {ledger.groceries: 200})
        target = make_budget(2026, 3, {ledger.groceries: 50, ledger.savings: 30})

        CopyPreviousMonthUseCase(db_session).execute(ledger.user_id, target.id)

        assert _allocations(db_session, target.id) == {
            ledger.groceries: Decimal("200"),
            ledger.savings: Decimal("30"),
        }

    def test_year_boundary(self, db_session, ledger, make_budget):
        make_budget(2025, 12, {ledger.savings: 40})
        target = make_budget(2026, 1)

        CopyPreviousMonthUseCase(db_session).execute(ledger.user_id, target.id)

        assert _allocations(db_session, target.id) == {ledger.savings: Decimal("40")}

    def test_previous_month_missing(self, db_session, ledger, make_budget):
        target = make_budget(2026, 3, {ledger.groceries: 10})
        # two months back does not count
        make_budget(2026, 1, {ledger.groceries: 99})

        with pytest.raises(BudgetNotFoundError, match="previous month"):
            CopyPreviousMonthUseCase(db_session).execute(ledger.user_id, target.id)
        assert _allocations(db_session, target.id) == {ledger.groceries: Decimal("10")}

    def test_foreign_target(self, db_session, ledger, make_budget):
        make_budget(2026, 2, {ledger.groceries: 10}, user_id=2)
        foreign = make_budget(2026, 3, user_id=2)

        with pytest.raises(BudgetNotFoundError):
            CopyPreviousMonthUseCase(db_session).execute(ledger.user_id, foreign.id)

    def test_returns_recomputed_snapshot(self, db_session, ledger, make_budget, make_tx):
        make_budget(2026, 2, {ledger.groceries: 200})
        target = make_budget(2026, 3)
        make_tx(ledger.checking, "1000", date(2026, 2, 1), type="income")
        make_tx(ledger.checking, "-50", date(2026, 3, 10), category_id=ledger.groceries)

        summary = CopyPreviousMonthUseCase(db_session).execute(ledger.user_id, target.id)

        assert summary.id == target.id
        rows = {row.id: row for row in summary.categories}
        assert rows[ledger.groceries].budgeted_amount == Decimal("200")
        # Feb 200 carried + Mar 200 - 50
        assert rows[ledger.groceries].available_amount == Decimal("350")
        # Feb 1000 - 200, Mar - 200
        assert summary.to_be_budgeted == Decimal("600")


# ============================================================================
# Concurrent first writes
# ============================================================================


@pytest.fixture
def stale_read(monkeypatch):
    """
    stale_read("_find_allocation") makes the first lookup miss, as if another
    request inserted the row between this request's read and its write.
    """
    def _patch(name):
        real = getattr(budget_module, name)
        calls = []

        def _first_call_misses(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                return None
            return real(*args, **kwargs)

        monkeypatch.setattr(budget_module, name, _first_call_misses)
        return calls
    return _patch


class TestConcurrentWrites:
    def test_set_allocation_overwrites_competing_insert(self, db_session, ledger, make_budget, stale_read):
        budget = make_budget(2026, 3, {ledger.groceries: 10})
        budget_id = budget.id
        db_session.commit()
        calls = stale_read("_find_allocation")

        SetAllocationUseCase(db_session).execute(ledger.user_id, budget_id, ledger.groceries, "250")

        assert len(calls) == 2
        assert _allocations(db_session, budget_id) == {ledger.groceries: Decimal("250")}

    def test_ensure_budget_returns_competing_month(self, db_session, ledger, make_budget, stale_read):
        existing_id = make_budget(2026, 3).id
        db_session.commit()
        stale_read("_find_budget")

        budget, created = EnsureBudgetUseCase(db_session).execute(ledger.user_id, 3, 2026)

        assert created is False
        assert budget.id == existing_id
        assert db_session.query(Budget).filter(Budget.user_id == ledger.user_id).count() == 1

    def test_copy_overwrites_competing_insert(self, db_session, ledger, make_budget, stale_read):
        make_budget(2026, 2, {ledger.groceries: 200, ledger.rent: 900})
        target_id = make_budget(2026, 3, {ledger.groceries: 5}).id
        db_session.commit()
        stale_read("_find_allocation")

        CopyPreviousMonthUseCase(db_session).execute(ledger.user_id, target_id)

        assert _allocations(db_session, target_id) == {
            ledger.groceries: Decimal("200"),
            ledger.rent: Decimal("900"),
        }
