"""Tests for the AI analysis agent."""

from datetime import timedelta

import pytest

from smartfi.agents import FinancialAnalysisAgent
from smartfi.agents.ai_agents import (
    FALLBACK_SUMMARY,
    build_prompt,
    parse_analysis,
    recent_transactions,
)
from smartfi.config.settings import GeminiSettings
from smartfi.models.ledger import Currency, Transaction
from tests.factories import NOW, make_account

ANSWER = (
    '```json\n{"summary": "Stable", "key_insights": ["Salary covers spending"], '
    '"spending_habits": ["Groceries"], "financial_advice": "Pay the card in full"}\n```'
)


class FakeResponse:

    def __init__(self, text):
        self.text = text


class FakeModel:

    def __init__(self, text=None, error=None):
        self._text = text
        self._error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self._error:
            raise self._error
        return FakeResponse(self._text)


def make_agent(model, max_transactions=50):
    settings = GeminiSettings(api_key="test", max_transactions_in_prompt=max_transactions)
    return FinancialAnalysisAgent(settings=settings, model=model)


def make_transactions(account, count):
    return [
        Transaction(
            account_id=account.id,
            amount=i,
            new_balance=i,
            timestamp=NOW - timedelta(days=count - i),
            reason=f"tx {i}",
        )
        for i in range(count)
    ]


class TestParsing:

    def test_extracts_json_from_fenced_answer(self):
        result = parse_analysis(ANSWER)
        assert result.summary == "Stable"
        assert result.key_insights == ["Salary covers spending"]
        assert result.used_fallback is False

    @pytest.mark.parametrize("text", [None, "", "no json here", "{not valid}", "[1, 2]"])
    def test_unparsable(self, text):
        assert parse_analysis(text) is None


class TestPrompt:

    def test_only_newest_transactions_are_sent(self):
        account = make_account("Cash")
        transactions = make_transactions(account, 5)

        recent = recent_transactions(transactions, 2)

        assert [r["reason"] for r in recent] == ["tx 4", "tx 3"]

    def test_prompt_mentions_scope(self):
        account = make_account("Cash", balance=10)
        prompt = build_prompt(
            "Group", "Banks", [account], make_transactions(account, 3),
            Currency.COP, 10.0, max_transactions=2,
        )
        assert "Group - Banks" in prompt
        assert "last 2" in prompt
        assert "Cash (COP)" in prompt


class TestAgent:

    @pytest.mark.asyncio
    async def test_returns_parsed_answer(self):
        model = FakeModel(text=ANSWER)
        account = make_account("Cash")

        result = await make_agent(model, max_transactions=3).analyze(
            "Account", "Cash", [account], make_transactions(account, 10), Currency.COP, 0.0
        )

        assert result.financial_advice == "Pay the card in full"
        assert "last 3" in model.prompts[0]

    @pytest.mark.asyncio
    async def test_model_error_falls_back(self):
        agent = make_agent(FakeModel(error=RuntimeError("quota exceeded")))

        result = await agent.analyze("Global", "All", [], [], Currency.COP, 0.0)

        assert result.used_fallback is True
        assert result.summary == FALLBACK_SUMMARY

    @pytest.mark.asyncio
    async def test_unparsable_answer_falls_back(self):
        agent = make_agent(FakeModel(text="I cannot help with that."))
        result = await agent.analyze("Global", "All", [], [], Currency.COP, 0.0)
        assert result.used_fallback is True
