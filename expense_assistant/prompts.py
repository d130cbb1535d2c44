"""
Prompt construction for the two assistant modes.

Both builders return the two-message list (system + user) accepted by
OpenAI-style chat-completion endpoints.
"""

import json
from collections.abc import Sequence
from datetime import date

from .schemas import Expense

DEFAULT_CURRENCY = "₹"

# Only the most recent entries are sent as context for expense extraction
MAX_RECENT_EXPENSES = 10

ANALYSIS_SYSTEM_PROMPT = (
    "You are a helpful financial assistant. Analyze the user's expenses and answer "
    "their question concisely and accurately.\n"
    "Provide specific numbers and insights. Keep responses brief and actionable."
)


def format_amount(value: float) -> str:
    """Render an amount the way a person would type it: 100, 12.5, 0.75."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def format_expense_line(
    expense: Expense,
    currency: str = DEFAULT_CURRENCY,
    include_notes: bool = True,
) -> str:
    line = (
        f"- {expense.title}: {currency}{format_amount(expense.amount)} "
        f"({expense.category}) on {expense.date}"
    )
    if include_notes and expense.notes:
        line += f" - {expense.notes}"
    return line


def compute_category_totals(expenses: Sequence[Expense]) -> dict[str, float]:
    """Sum amounts per category, keyed in order of first occurrence."""
    totals: dict[str, float] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, 0) + expense.amount
    return totals


def total_amount(expenses: Sequence[Expense]) -> float:
    total = 0.0
    for expense in expenses:
        total += expense.amount
    return total


def build_analysis_messages(
    question: str,
    expenses: Sequence[Expense],
    currency: str = DEFAULT_CURRENCY,
) -> list[dict[str, str]]:
    expenses_summary = "\n".join(
        format_expense_line(expense, currency) for expense in expenses
    )
    category_breakdown = "\n".join(
        f"{category}: {currency}{total:.2f}"
        for category, total in compute_category_totals(expenses).items()
    )
    grand_total = total_amount(expenses)

    user_prompt = (
        "Here are the user's recent expenses:\n\n"
        f"{expenses_summary}\n\n"
        "Category Breakdown:\n"
        f"{category_breakdown}\n\n"
        f"Total Expenses: {currency}{grand_total:.2f}\n\n"
        f"User's Question: {question}\n\n"
        "Please answer the question based on the provided expense data."
    )
    return [
        {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def _get_extraction_system_prompt(today: date) -> str:
    return (
        "You are an assistant for a personal expense tracker. Decide whether the "
        "user's message asks to record an expense and reply with JSON in this exact "
        "format:\n"
        "{\n"
        '  "answer": "short confirmation or reply for the user",\n'
        '  "expenseData": {\n'
        '    "title": "short description of the purchase",\n'
        '    "amount": <number>,\n'
        '    "category": "one of the available categories",\n'
        '    "notes": "extra details or null",\n'
        '    "date": "YYYY-MM-DD"\n'
        "  }\n"
        "}\n"
        "Rules:\n"
        "- category must be chosen from the available categories list.\n"
        f"- If no date is mentioned, use today's date: {today.isoformat()}.\n"
        "- amount must be a plain number without currency symbols.\n"
        '- If the message is not a request to add an expense, set "expenseData" to '
        'null and use "answer" to reply briefly.\n'
        "Reply only with valid JSON, without any extra explanation."
    )


def build_extraction_messages(
    text: str,
    available_categories: Sequence[str],
    recent_expenses: Sequence[Expense] | None = None,
    currency: str = DEFAULT_CURRENCY,
    today: date | None = None,
) -> list[dict[str, str]]:
    today = today or date.today()
    recent = list(recent_expenses or [])[:MAX_RECENT_EXPENSES]
    if recent:
        context = "\n".join(
            format_expense_line(expense, currency, include_notes=False)
            for expense in recent
        )
    else:
        context = "(no recent expenses)"

    user_prompt = (
        f"Available categories: {json.dumps(list(available_categories), ensure_ascii=False)}\n\n"
        "Recent expenses:\n"
        f"{context}\n\n"
        f"User input: {text}"
    )
    return [
        {"role": "system", "content": _get_extraction_system_prompt(today)},
        {"role": "user", "content": user_prompt},
    ]
