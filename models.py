"""Input and configuration records for the budget engine."""

from __future__ import annotations

from typing import Annotated, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

BudgetCap = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class Transaction(BaseModel):
    """A single dated, described, signed money movement.

    Negative ``amount`` is spend, zero or positive is income/credit. A
    ``category`` supplied on import wins over keyword inference.
    """

    model_config = ConfigDict(frozen=True)

    date: str
    description: str
    amount: float
    category: Optional[str] = None

    @property
    def is_spend(self) -> bool:
        return self.amount < 0

    def to_record(self) -> dict:
        record = {"date": self.date, "description": self.description, "amount": self.amount}
        if self.category:
            record["category"] = self.category
        return record


class BudgetConfig(BaseModel):
    """Monthly cap plus per-category caps. Zero means "unset"."""

    monthly_total: BudgetCap = 0.0
    per_category: Dict[str, BudgetCap] = Field(default_factory=dict)


class WhatIfConfig(BaseModel):
    """Per-category reduction percentages and the basis toggle."""

    reductions: Dict[str, float] = Field(default_factory=dict)
    using_simulation: bool = False

    @field_validator("reductions")
    @classmethod
    def _percent_range(cls, value: Dict[str, float]) -> Dict[str, float]:
        for category, pct in value.items():
            if not 0 <= pct <= 100:
                raise ValueError(f"reduction for {category!r} must be between 0 and 100")
        return value
