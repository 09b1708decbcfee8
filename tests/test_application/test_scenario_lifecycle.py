"""
Tests for scenario lifecycle use cases and notes cleanup
"""
from decimal import Decimal
from unittest.mock import Mock

import pytest
import requests

from budgetlock.application.distribution import DistributeYearlyBudgetUseCase
from budgetlock.application.quarter_locks import LockQuarterUseCase, ConfirmYearlyBudgetUseCase
from budgetlock.application.scenarios import (
    CreateScenarioUseCase, SetActiveScenarioUseCase, RenameScenarioUseCase,
    UpdateScenarioNotesUseCase, DuplicateScenarioUseCase, DeleteScenarioUseCase,
    CleanupScenarioNotesUseCase, list_scenarios, get_active_scenario,
)
from budgetlock.config import Settings
from budgetlock.domain.errors import BudgetValidationError, ScenarioNotFound, ExternalServiceUnavailable
from budgetlock.infrastructure.db.models import BudgetItem, BudgetScenario
from budgetlock.infrastructure.notes_cleanup import NotesCleanupClient, NotesContext, build_cleanup_prompt


class TestCreateScenario:
    def test_creates_unlocked_draft(self, db_session, sample_account_id):
        s = CreateScenarioUseCase(db_session).execute(sample_account_id, "  Base plan ", 2026)

        assert s.name == "Base plan"
        assert s.status == "draft"
        assert s.locked_quarters == []
        assert s.yearly_confirmed is False
        assert s.is_active is False

    def test_blank_name_rejected(self, db_session, sample_account_id):
        with pytest.raises(BudgetValidationError, match="name"):
            CreateScenarioUseCase(db_session).execute(sample_account_id, "   ", 2026)

    def test_seed_from_previous_year(self, db_session, sample_account_id, reference_ledger):
        s = CreateScenarioUseCase(db_session).execute(sample_account_id, "Seeded", 2026, seed_from_previous_year=True)

        items = db_session.query(BudgetItem).filter(BudgetItem.scenario_id == s.id).all()
        by_key = {(i.category_id, i.month): i for i in items}

        assert by_key[(reference_ledger["product"], 3)].budgeted_amount == Decimal("1200.00")
        assert by_key[(reference_ledger["salaries"], 1)].budgeted_amount == Decimal("600.00")
        # unconfirmed rent transaction is not copied
        assert by_key[(reference_ledger["rent"], 2)].budgeted_amount == Decimal("250.00")
        assert all(i.is_auto_populated for i in items)

    def test_list_newest_first(self, db_session, sample_account_id):
        use_case = CreateScenarioUseCase(db_session)
        first = use_case.execute(sample_account_id, "A", 2026)
        second = use_case.execute(sample_account_id, "B", 2026)
        use_case.execute(sample_account_id, "Other year", 2027)

        assert [s.id for s in list_scenarios(db_session, sample_account_id, 2026)] == [second.id, first.id]


class TestScenarioEdits:
    def test_only_one_active(self, db_session, sample_account_id):
        create = CreateScenarioUseCase(db_session)
        a = create.execute(sample_account_id, "A", 2026)
        b = create.execute(sample_account_id, "B", 2026)

        activate = SetActiveScenarioUseCase(db_session)
        activate.execute(sample_account_id, a.id)
        activate.execute(sample_account_id, b.id)

        db_session.expire_all()
        assert get_active_scenario(db_session, sample_account_id, 2026).id == b.id
        assert db_session.query(BudgetScenario).filter(BudgetScenario.is_active == True).count() == 1

    def test_rename(self, db_session, sample_account_id, scenario):
        RenameScenarioUseCase(db_session).execute(sample_account_id, scenario.id, "Stretch")

        assert scenario.name == "Stretch"

    def test_rename_blank_rejected(self, db_session, sample_account_id, scenario):
        with pytest.raises(BudgetValidationError):
            RenameScenarioUseCase(db_session).execute(sample_account_id, scenario.id, "")

    def test_notes_blank_stored_as_null(self, db_session, sample_account_id, scenario):
        use_case = UpdateScenarioNotesUseCase(db_session)
        use_case.execute(sample_account_id, scenario.id, "  Hire two people in Q3  ")
        assert scenario.notes == "Hire two people in Q3"

        use_case.execute(sample_account_id, scenario.id, "   ")
        assert scenario.notes is None

    def test_notes_allowed_while_locked(self, db_session, sample_account_id, scenario):
        LockQuarterUseCase(db_session).execute(sample_account_id, scenario.id, 1)

        UpdateScenarioNotesUseCase(db_session).execute(sample_account_id, scenario.id, "Frozen")

        assert scenario.notes == "Frozen"


class TestDuplicateAndDelete:
    def test_duplicate_copies_items_not_locks(self, db_session, sample_account_id, scenario, budget_tree):
        DistributeYearlyBudgetUseCase(db_session).execute(sample_account_id, scenario.id, budget_tree["rent"], "1000")
        ConfirmYearlyBudgetUseCase(db_session).execute(sample_account_id, scenario.id)
        LockQuarterUseCase(db_session).execute(sample_account_id, scenario.id, 1)

        copy = DuplicateScenarioUseCase(db_session).execute(sample_account_id, scenario.id, "Copy")

        assert copy.id != scenario.id
        assert copy.year == scenario.year
        assert copy.status == "draft"
        assert copy.locked_quarters == []
        assert copy.yearly_confirmed is False
        amounts = {
            i.month: i.budgeted_amount
            for i in db_session.query(BudgetItem).filter(BudgetItem.scenario_id == copy.id).all()
        }
        assert amounts[12] == Decimal("83.37")
        assert sum(amounts.values()) == Decimal("1000.00")

    def test_duplicate_is_independent(self, db_session, sample_account_id, scenario, budget_tree):
        DistributeYearlyBudgetUseCase(db_session).execute(sample_account_id, scenario.id, budget_tree["rent"], "1200")
        copy = DuplicateScenarioUseCase(db_session).execute(sample_account_id, scenario.id, "Copy")

        DistributeYearlyBudgetUseCase(db_session).execute(sample_account_id, copy.id, budget_tree["rent"], "0")

        original = db_session.query(BudgetItem).filter(BudgetItem.scenario_id == scenario.id).all()
        assert {i.budgeted_amount for i in original} == {Decimal("100.00")}

    def test_delete(self, db_session, sample_account_id, scenario, budget_tree):
        DistributeYearlyBudgetUseCase(db_session).execute(sample_account_id, scenario.id, budget_tree["rent"], "1200")
        scenario_id = scenario.id

        DeleteScenarioUseCase(db_session).execute(sample_account_id, scenario_id)

        assert db_session.query(BudgetItem).count() == 0
        with pytest.raises(ScenarioNotFound):
            DeleteScenarioUseCase(db_session).execute(sample_account_id, scenario_id)

    def test_delete_other_account(self, db_session, scenario):
        with pytest.raises(ScenarioNotFound):
            DeleteScenarioUseCase(db_session).execute(2, scenario.id)


@pytest.fixture
def cleanup_settings():
    return Settings(
        NOTES_CLEANUP_URL="http://notes.test/cleanup",
        NOTES_CLEANUP_API_KEY="secret",
        NOTES_CLEANUP_TIMEOUT=2.5,
    )


def _context():
    return NotesContext(
        scenario_name="Base plan",
        year=2026,
        total_budget_income=Decimal("2000.00"),
        total_budget_expenses=Decimal("800.00"),
        net_budget=Decimal("1200.00"),
        total_reference_income=Decimal("1500.00"),
        total_reference_expenses=Decimal("850.00"),
    )


class TestNotesCleanupClient:
    def test_not_configured(self):
        client = NotesCleanupClient(settings=Settings(NOTES_CLEANUP_URL=""), session=Mock())

        with pytest.raises(ExternalServiceUnavailable, match="not configured"):
            client.cleanup("notes", _context())

        client.session.post.assert_not_called()

    def test_posts_notes_and_context(self, cleanup_settings):
        session = Mock()
        session.post.return_value.json.return_value = {"cleaned_notes": " Clean text. "}
        client = NotesCleanupClient(settings=cleanup_settings, session=session)

        assert client.cleanup("raw notes", _context()) == "Clean text."

        _, kwargs = session.post.call_args
        assert kwargs["json"]["notes"] == "raw notes"
        assert kwargs["json"]["context"]["net_budget"] == "1200.00"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["timeout"] == 2.5

    def test_http_failure(self, cleanup_settings):
        session = Mock()
        session.post.side_effect = requests.ConnectionError("refused")
        client = NotesCleanupClient(settings=cleanup_settings, session=session)

        with pytest.raises(ExternalServiceUnavailable, match="refused"):
            client.cleanup("raw notes", _context())

    def test_empty_answer(self, cleanup_settings):
        session = Mock()
        session.post.return_value.json.return_value = {}
        client = NotesCleanupClient(settings=cleanup_settings, session=session)

        with pytest.raises(ExternalServiceUnavailable, match="empty"):
            client.cleanup("raw notes", _context())

    def test_prompt_contains_formatted_totals(self):
        prompt = build_cleanup_prompt("raw", _context(), "GBP")

        assert "£2,000.00" in prompt
        assert '"Base plan" for 2026' in prompt
        assert "Income vs Reference: +£500.00" in prompt
        assert "Expenses vs Reference: -£50.00" in prompt


class TestCleanupScenarioNotes:
    def test_uses_stored_notes_and_does_not_persist(self, db_session, sample_account_id, scenario, budget_tree):
        UpdateScenarioNotesUseCase(db_session).execute(sample_account_id, scenario.id, "hire ppl q3")
        DistributeYearlyBudgetUseCase(db_session).execute(sample_account_id, scenario.id, budget_tree["product"], "2000")
        client = Mock()
        client.cleanup.return_value = "Hire two people in Q3."

        cleaned = CleanupScenarioNotesUseCase(db_session, client=client).execute(sample_account_id, scenario.id)

        assert cleaned == "Hire two people in Q3."
        notes, context = client.cleanup.call_args[0]
        assert notes == "hire ppl q3"
        assert context.total_budget_income == Decimal("2000.00")
        assert scenario.notes == "hire ppl q3"

    def test_no_notes(self, db_session, sample_account_id, scenario):
        client = Mock()

        with pytest.raises(BudgetValidationError):
            CleanupScenarioNotesUseCase(db_session, client=client).execute(sample_account_id, scenario.id)

        client.cleanup.assert_not_called()

    def test_service_error_propagates(self, db_session, sample_account_id, scenario):
        client = Mock()
        client.cleanup.side_effect = ExternalServiceUnavailable("Notes cleanup service", "timeout")

        with pytest.raises(ExternalServiceUnavailable):
            CleanupScenarioNotesUseCase(db_session, client=client).execute(sample_account_id, scenario.id, "draft")
