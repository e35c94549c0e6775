"""AI agents package."""

from smartfi.agents.ai_agents import AnalysisResult, FinancialAnalysisAgent

__all__ = ["AnalysisResult", "FinancialAnalysisAgent"]
