"""
Computed Metric Models

Outputs of the computation engine. These are derived values only:
nothing here is ever persisted, everything is recomputed whenever
accounts, transactions or the exchange rate change.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TimeWindow(str, Enum):
    """Lookback windows offered on the performance page."""
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "ALL"  # Since the project start date

    @property
    def months(self) -> Optional[int]:
        return {
            "1M": 1,
            "3M": 3,
            "6M": 6,
            "1Y": 12,
        }.get(self.value)


class ScopeDimension(str, Enum):
    """How the account set is narrowed for performance stats."""
    GENERAL = "GENERAL"
    GROUP = "GROUP"
    TAG = "TAG"


class PerformanceScope(BaseModel):
    """
    Which accounts performance is computed over.

    A filter_id of None or "ALL" selects every account regardless
    of the dimension.
    """
    model_config = ConfigDict(frozen=True)

    dimension: ScopeDimension = ScopeDimension.GENERAL
    filter_id: Optional[str] = None

    @property
    def selects_all(self) -> bool:
        return (
            self.dimension == ScopeDimension.GENERAL
            or self.filter_id is None
            or self.filter_id == "ALL"
        )


class ScopeOption(BaseModel):
    """A selectable filter value for a scope dimension."""
    id: str
    label: str


class Valuation(BaseModel):
    """Current aggregate position, in one target currency."""
    model_config = ConfigDict(frozen=True)

    total_assets: float = 0.0
    total_liabilities: float = 0.0
    net_worth: float = 0.0
    liquidity: float = 0.0
    buying_power: float = 0.0
    credit_limit_total: float = 0.0


class HistoryPoint(BaseModel):
    """Reconstructed position at the start of one day."""
    model_config = ConfigDict(frozen=True)

    date: datetime
    net_worth: float
    liquidity: float
    buying_power: float


class Projection(BaseModel):
    """Snowball projection at a fixed number of months ahead."""
    model_config = ConfigDict(frozen=True)

    months: int = Field(ge=1)
    value: float

    @property
    def label(self) -> str:
        return f"{self.months} months"


class PerformanceStats(BaseModel):
    """
    Return figures for one scope and window.

    normal_return and annualized_return are percentages.
    """
    model_config = ConfigDict(frozen=True)

    normal_return: float = 0.0
    annualized_return: float = 0.0
    projections: list[Projection] = Field(default_factory=list)
    current_val: float = 0.0
    start_val: float = 0.0
    window_start: Optional[datetime] = None
