from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from expense_assistant.assistant import ExpenseAssistant, PARSE_FAILURE_ANSWER
from expense_assistant.errors import ConfigurationError, InvalidInputError
from expense_assistant.prompts import total_amount
from expense_assistant.schemas import AddExpenseResponse, AnalyzeResponse, Expense

ANALYZE_INVALID_MESSAGE = "Invalid request. Required: question (string), expenses (array)"
ANALYZE_FAILED_MESSAGE = "Failed to analyze expenses"
ADD_EXPENSE_INVALID_MESSAGE = (
    "Invalid request. Required: input (string), availableCategories (array)"
)
ADD_EXPENSE_FAILED_MESSAGE = "Failed to process expense"
ADD_EXPENSE_INVALID_ANSWER = "Please describe the expense you want to add."
ADD_EXPENSE_UNAVAILABLE_ANSWER = (
    "Sorry, the assistant is unavailable right now. Please add the expense manually."
)

router = APIRouter()


def get_assistant(request: Request) -> ExpenseAssistant:
    """Return the pipeline built at startup from the app's Settings."""
    return request.app.state.assistant


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "OK"}


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: Request, assistant: ExpenseAssistant = Depends(get_assistant)
) -> AnalyzeResponse | JSONResponse:
    """
    Answer a question about the caller's expenses.

    The summary block is computed locally from the request, only the answer
    text comes from the model.
    """
    payload = await _read_json_object(request)
    try:
        question, expenses = _parse_analyze_payload(payload)
    except InvalidInputError as exc:
        logger.warning("Rejected analyze request", code=exc.code.value, reason=exc.message)
        return JSONResponse(
            status_code=exc.status_code, content={"error": ANALYZE_INVALID_MESSAGE}
        )

    try:
        return await assistant.analyze(question, expenses)
    except ConfigurationError as exc:
        logger.error(
            "Analyze request failed: configuration error",
            code=exc.code.value,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
    except Exception as exc:
        logger.exception("Analyze request failed", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": ANALYZE_FAILED_MESSAGE, "details": str(exc)},
        )


@router.post("/add-expense", response_model=AddExpenseResponse)
async def add_expense(
    request: Request, assistant: ExpenseAssistant = Depends(get_assistant)
) -> AddExpenseResponse | JSONResponse:
    """
    Convert a natural-language command into a structured expense record.

    Every failure still returns ``answer`` and ``expenseData: null`` so clients
    can degrade to manual entry.
    """
    payload = await _read_json_object(request)
    try:
        text, categories, recent = _parse_add_expense_payload(payload)
    except InvalidInputError as exc:
        logger.warning(
            "Rejected add-expense request", code=exc.code.value, reason=exc.message
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": ADD_EXPENSE_INVALID_MESSAGE,
                "answer": ADD_EXPENSE_INVALID_ANSWER,
                "expenseData": None,
            },
        )

    try:
        result = await assistant.add_expense(text, categories, recent_expenses=recent)
    except ConfigurationError as exc:
        logger.error(
            "Add-expense request failed: configuration error",
            code=exc.code.value,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.message,
                "answer": ADD_EXPENSE_UNAVAILABLE_ANSWER,
                "expenseData": None,
            },
        )
    except Exception as exc:
        logger.exception("Add-expense request failed", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={
                "error": ADD_EXPENSE_FAILED_MESSAGE,
                "details": str(exc),
                "answer": ADD_EXPENSE_UNAVAILABLE_ANSWER,
                "expenseData": None,
            },
        )

    if not result.parsed:
        return JSONResponse(
            status_code=400,
            content={"answer": PARSE_FAILURE_ANSWER, "expenseData": None},
        )
    return result.response


async def _read_json_object(request: Request) -> dict[str, Any] | None:
    """Return the JSON body if it is an object, None for anything else."""
    try:
        payload = await request.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _parse_expenses(raw: Any, field: str) -> list[Expense]:
    if not isinstance(raw, list):
        raise InvalidInputError(f"{field} must be an array")
    try:
        return [Expense.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise InvalidInputError(f"{field} contains an invalid expense: {exc.error_count()} error(s)") from exc


def _parse_analyze_payload(payload: dict[str, Any] | None) -> tuple[str, list[Expense]]:
    if payload is None:
        raise InvalidInputError("body must be a JSON object")
    question = payload.get("question")
    if not isinstance(question, str) or not question:
        raise InvalidInputError("question must be a non-empty string")
    expenses = _parse_expenses(payload.get("expenses"), "expenses")
    if not math.isfinite(total_amount(expenses)):
        raise InvalidInputError("expenses total is not a finite number")
    return question, expenses


def _parse_add_expense_payload(
    payload: dict[str, Any] | None,
) -> tuple[str, list[str], list[Expense]]:
    if payload is None:
        raise InvalidInputError("body must be a JSON object")
    text = payload.get("input")
    if not isinstance(text, str) or not text:
        raise InvalidInputError("input must be a non-empty string")

    categories = payload.get("availableCategories")
    if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
        raise InvalidInputError("availableCategories must be an array of strings")

    recent_raw = payload.get("recentExpenses")
    recent = [] if recent_raw is None else _parse_expenses(recent_raw, "recentExpenses")
    return text, categories, recent
