from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Expense(BaseModel):
    """A caller-supplied spending record. Read-only input."""

    title: str = ""
    amount: float = Field(allow_inf_nan=False)
    category: str
    date: str = ""
    notes: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def reject_boolean_amount(cls, v: Any) -> Any:
        # bool is an int subclass and would otherwise validate as 1.0 / 0.0
        if isinstance(v, bool):
            raise ValueError("amount must be a number, not a boolean")
        return v


class ExpenseSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    breakdown: dict[str, float]
    total_expenses: float = Field(alias="totalExpenses")
    expense_count: int = Field(alias="expenseCount")


class AnalyzeResponse(BaseModel):
    answer: str
    summary: ExpenseSummary


class ExpenseData(BaseModel):
    """Expense record parsed out of the model's reply."""

    title: str = ""
    amount: float = 0.0
    category: str = ""
    notes: str | None = None
    date: str


class AddExpenseResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    expense_data: ExpenseData | None = Field(default=None, alias="expenseData")
