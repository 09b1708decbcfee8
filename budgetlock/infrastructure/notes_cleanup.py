"""
HTTP client for the external notes-cleanup text service.

The service receives the raw scenario notes plus a budget summary and answers
with cleaned text: {"cleaned_notes": "..."}.
"""
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal

import requests

from budgetlock.config import Settings, get_settings
from budgetlock.domain.errors import ExternalServiceUnavailable
from budgetlock.utils.money import format_money, format_change

logger = logging.getLogger(__name__)

SERVICE_NAME = "Notes cleanup service"


@dataclass(frozen=True)
class NotesContext:
    scenario_name: str
    year: int
    total_budget_income: Decimal
    total_budget_expenses: Decimal
    net_budget: Decimal
    total_reference_income: Decimal
    total_reference_expenses: Decimal

    def to_payload(self) -> dict:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, Decimal):
                payload[key] = str(value)
        return payload


def build_cleanup_prompt(notes: str, context: NotesContext, currency: str = "GBP") -> str:
    """Instruction text sent together with the structured context."""
    income_change = context.total_budget_income - context.total_reference_income
    expense_change = context.total_budget_expenses - context.total_reference_expenses
    return (
        "You are a financial planning assistant. Clean up and improve these budget "
        "scenario notes while preserving the original intent and key information.\n\n"
        "BUDGET CONTEXT:\n"
        f'- Scenario: "{context.scenario_name}" for {context.year}\n'
        f"- Budgeted Income: {format_money(context.total_budget_income, currency)}\n"
        f"- Budgeted Expenses: {format_money(context.total_budget_expenses, currency)}\n"
        f"- Net Budget: {format_money(context.net_budget, currency)}\n"
        f"- Reference Year Income: {format_money(context.total_reference_income, currency)}\n"
        f"- Reference Year Expenses: {format_money(context.total_reference_expenses, currency)}\n"
        f"- Income vs Reference: {format_change(income_change, currency)}\n"
        f"- Expenses vs Reference: {format_change(expense_change, currency)}\n\n"
        "ORIGINAL NOTES:\n"
        f"{notes}\n\n"
        "Fix grammar and spelling, keep it concise (2-3 sentences) and output only the cleaned notes."
    )


class NotesCleanupClient:
    """Thin requests-based client; every failure surfaces as ExternalServiceUnavailable."""

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    def cleanup(self, notes: str, context: NotesContext) -> str:
        if not self.settings.notes_cleanup_configured:
            logger.warning("Notes cleanup service not configured, skipping")
            raise ExternalServiceUnavailable(SERVICE_NAME, "not configured")

        headers = {}
        if self.settings.NOTES_CLEANUP_API_KEY:
            headers["Authorization"] = f"Bearer {self.settings.NOTES_CLEANUP_API_KEY}"

        try:
            resp = self.session.post(
                self.settings.NOTES_CLEANUP_URL,
                json={
                    "notes": notes,
                    "prompt": build_cleanup_prompt(notes, context, self.settings.LEDGER_CURRENCY),
                    "context": context.to_payload(),
                },
                headers=headers,
                timeout=self.settings.NOTES_CLEANUP_TIMEOUT,
            )
            resp.raise_for_status()
            cleaned = (resp.json().get("cleaned_notes") or "").strip()
        except (requests.RequestException, ValueError) as exc:
            logger.exception("Notes cleanup request failed for scenario %r", context.scenario_name)
            raise ExternalServiceUnavailable(SERVICE_NAME, str(exc)) from exc

        if not cleaned:
            raise ExternalServiceUnavailable(SERVICE_NAME, "empty response")
        return cleaned
