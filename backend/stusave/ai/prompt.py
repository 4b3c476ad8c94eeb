"""Prompt templates and response schemas for the advice and prediction endpoints."""

from __future__ import annotations

from typing import Any

MAX_PREDICTION_HISTORY = 30

ADVICE_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "advice": {"type": "STRING", "description": "A short, personalized money-saving tip."},
    },
    "required": ["advice"],
}

PREDICTION_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "predicted_amount": {"type": "NUMBER"},
        "reasoning": {"type": "STRING"},
    },
    "required": ["predicted_amount", "reasoning"],
}


def build_advice_prompt(spending_summary: str, budget: float) -> str:
    return (
        "You are a personal money advisor for students. Look at their spending "
        "habits and give one short, actionable money-saving tip.\n\n"
        f"Spending summary: {spending_summary}\n"
        f"Monthly budget: {budget}\n\n"
        "Reply with one short saving tip."
    )


def build_prediction_prompt(
    history: list[dict[str, Any]],
    currency_symbol: str,
    tomorrow_day_of_week: str,
) -> str:
    """Only the most recent records are included to keep the prompt bounded."""
    recent = history[-MAX_PREDICTION_HISTORY:]
    lines = [
        f"- Date: {item['date']} ({item['day_of_week']}), Amount: {item['amount']}"
        for item in recent
    ]
    history_block = "\n".join(lines) if lines else "- (no spending recorded yet)"

    return (
        "You are a financial analyst for a student money-saving app. Predict the "
        "user's total spending for tomorrow from their recent history.\n\n"
        "Look for daily averages, weekly patterns (for example higher spending on "
        "Fridays and weekends), recent spikes or drops, and habits tied to specific "
        "days of the week.\n\n"
        f"Tomorrow is a {tomorrow_day_of_week}.\n"
        f"Currency: {currency_symbol}\n"
        "Spending history:\n"
        f"{history_block}\n\n"
        f"Predict the total amount for tomorrow ({tomorrow_day_of_week}) as a single "
        "number, not a range, with a one-sentence reasoning naming the key factor."
    )
