"""
Shaping of model replies into API responses.

The Q&A summary is computed from the caller's own data so totals never depend
on what the model says. Extraction replies go through ``decode_extraction``,
which never raises: it returns a ``DecodeResult`` describing what came back.
"""

import json
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from .errors import ErrorCode
from .prompts import compute_category_totals, total_amount
from .schemas import Expense, ExpenseData, ExpenseSummary

DecodeStatus = Literal["expense", "not_expense", "unparsable"]

_JSON_DECODER = json.JSONDecoder()


def summarize_expenses(expenses: Sequence[Expense]) -> ExpenseSummary:
    return ExpenseSummary(
        breakdown=compute_category_totals(expenses),
        total_expenses=total_amount(expenses),
        expense_count=len(expenses),
    )


@dataclass
class DecodeResult:
    """
    Outcome of interpreting the model's reply in extraction mode.

    Attributes:
        status: 'expense', 'not_expense' or 'unparsable'
        answer: The model's user-facing text (None when unparsable)
        expense_data: Raw expenseData object (only for 'expense')
        error: Why decoding failed (only for 'unparsable')
    """
    status: DecodeStatus
    answer: str | None = None
    expense_data: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "unparsable"

    @property
    def error_code(self) -> ErrorCode | None:
        return ErrorCode.PARSE_ERROR if self.status == "unparsable" else None


def _unparsable(error: str) -> DecodeResult:
    return DecodeResult(status="unparsable", error=error)


def _first_json_object(text: str) -> tuple[dict[str, Any] | None, str]:
    """Decode the first `{` in ``text`` that starts a complete JSON object."""
    first_error = None
    start = text.find("{")
    if start == -1:
        return None, "JSON object not found in model reply"
    while start != -1:
        try:
            payload, _ = _JSON_DECODER.raw_decode(text, start)
        except json.JSONDecodeError as exc:
            if first_error is None:
                first_error = exc.msg
        else:
            return payload, ""
        start = text.find("{", start + 1)
    return None, f"invalid JSON: {first_error}"


def decode_extraction(text: str | None) -> DecodeResult:
    if not text or not text.strip():
        return _unparsable("empty model reply")

    payload, error = _first_json_object(text)
    if payload is None:
        return _unparsable(error)

    answer = payload.get("answer")
    if not isinstance(answer, str):
        return _unparsable("'answer' is missing or not a string")

    expense_data = payload.get("expenseData")
    if expense_data is None:
        return DecodeResult(status="not_expense", answer=answer)
    if not isinstance(expense_data, dict):
        return _unparsable("'expenseData' must be an object or null")

    return DecodeResult(status="expense", answer=answer, expense_data=expense_data)


def coerce_amount(value: Any) -> float:
    """Coerce a model-supplied amount to a float, 0 when it isn't numeric."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip().replace(",", ""))
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def match_category(category: Any, available_categories: Sequence[str]) -> Any:
    """Return the caller's spelling of ``category`` if it matches case-insensitively."""
    if not isinstance(category, str):
        return category
    wanted = category.strip().casefold()
    for candidate in available_categories:
        if candidate.strip().casefold() == wanted:
            return candidate
    return category


def normalize_expense_data(
    raw: dict[str, Any],
    available_categories: Sequence[str],
    today: date | None = None,
) -> ExpenseData:
    raw_date = raw.get("date")
    if isinstance(raw_date, str) and raw_date.strip():
        expense_date = raw_date.strip()
    else:
        expense_date = (today or date.today()).isoformat()

    category = match_category(raw.get("category"), available_categories)
    notes = raw.get("notes")
    title = raw.get("title")

    return ExpenseData(
        title="" if title is None else str(title),
        amount=coerce_amount(raw.get("amount")),
        category="" if category is None else str(category),
        notes=None if notes is None or notes == "" else str(notes),
        date=expense_date,
    )
