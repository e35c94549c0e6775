"""
AI Financial Analysis

DESIGN DECISION: Gemini reads the ledger and writes advice. It never
writes to the ledger.

CRITICAL BOUNDARIES:
- CAN: Summarize balances and recent transactions, spot habits from the
  free-text transaction reasons, suggest improvements
- CANNOT: Change accounts, balances or the exchange rate
- CANNOT: Fail the page. Any error (network, quota, unparsable answer)
  produces the fallback result

The LLM only sees data we hand it: account summaries and the most
recent transactions of the selected scope.
"""

import json
from typing import Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field, ValidationError

from smartfi.config import get_settings
from smartfi.config.settings import GeminiSettings
from smartfi.models.ledger import Account, Currency, Transaction

logger = structlog.get_logger(__name__)

FALLBACK_SUMMARY = "The analysis could not be generated right now."
FALLBACK_ADVICE = "Please try again later."


class AnalysisResult(BaseModel):
    """What the analysis panel shows."""

    summary: str = Field(description="Brief summary of the financial situation")
    key_insights: list[str] = Field(default_factory=list)
    spending_habits: list[str] = Field(default_factory=list)
    financial_advice: str = ""
    used_fallback: bool = Field(
        default=False,
        description="True when the model could not be reached or parsed"
    )

    @classmethod
    def fallback(cls) -> "AnalysisResult":
        return cls(
            summary=FALLBACK_SUMMARY,
            financial_advice=FALLBACK_ADVICE,
            used_fallback=True,
        )


def recent_transactions(
    transactions: Sequence[Transaction],
    limit: int,
) -> list[dict]:
    """The newest `limit` transactions as prompt-ready dicts, newest first."""
    newest = sorted(transactions, key=lambda t: t.timestamp, reverse=True)[:limit]
    return [
        {
            "date": t.timestamp.date().isoformat(),
            "amount": t.amount,
            "reason": t.reason,
            "balance_after": t.new_balance,
        }
        for t in newest
    ]


def build_prompt(
    scope: str,
    name: str,
    accounts: Sequence[Account],
    transactions: Sequence[Transaction],
    currency: Currency,
    total_balance: float,
    max_transactions: int = 50,
) -> str:
    account_summaries = [f"{a.name} ({a.currency.value}): {a.balance}" for a in accounts]
    recent = recent_transactions(transactions, max_transactions)

    return f"""Act as an expert financial advisor. Analyze the following financial data for: {scope} - {name}.

Context:
- Total balance (approx in {currency.value}): {total_balance:.2f}
- Accounts involved: {json.dumps(account_summaries)}
- Recent transactions (last {len(recent)}): {json.dumps(recent)}

Task:
1. Use the "reason" fields to identify spending habits and income sources.
2. Identify what drives the variability.
3. Give actionable advice (debt reduction, saving opportunities).
4. Keep it concise, professional and friendly.

Respond with ONLY a JSON object in this exact format:
{{"summary": "...", "key_insights": ["..."], "spending_habits": ["..."], "financial_advice": "..."}}"""


def parse_analysis(text: Optional[str]) -> Optional[AnalysisResult]:
    """
    Extract the JSON object from a model answer.

    Returns None when no valid object can be found.
    """
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end])
        return AnalysisResult(
            summary=data.get("summary", ""),
            key_insights=data.get("key_insights") or [],
            spending_habits=data.get("spending_habits") or [],
            financial_advice=data.get("financial_advice", ""),
        )
    except (json.JSONDecodeError, ValidationError, AttributeError):
        return None


class FinancialAnalysisAgent:
    """
    Gemini-backed advisor for one scope (everything, a group or an account).

    BOUNDARIES:
    - NEVER persists data
    - ALWAYS returns an AnalysisResult
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[genai.GenerativeModel] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model or self._configure_genai()

    def _configure_genai(self) -> genai.GenerativeModel:
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    async def analyze(
        self,
        scope: str,
        name: str,
        accounts: Sequence[Account],
        transactions: Sequence[Transaction],
        currency: Currency,
        total_balance: float,
    ) -> AnalysisResult:
        """
        Analyze the given accounts and their transactions.

        Args:
            scope: "Global", "Group" or "Account"
            name: Display name of the scope
            accounts: Accounts in scope
            transactions: Their transactions (only the newest are sent)
            currency: Currency total_balance is expressed in
            total_balance: Net value of the scope

        Returns:
            The parsed analysis, or AnalysisResult.fallback() on any failure
        """
        prompt = build_prompt(
            scope,
            name,
            accounts,
            transactions,
            currency,
            total_balance,
            max_transactions=self._settings.max_transactions_in_prompt,
        )

        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text
        except Exception as e:
            # Any SDK, network or quota failure degrades to the fallback
            logger.warning("analysis_request_failed", scope=scope, name=name, error=str(e))
            return AnalysisResult.fallback()

        result = parse_analysis(text)
        if result is None:
            logger.warning("analysis_unparsable", scope=scope, name=name)
            return AnalysisResult.fallback()
        return result
