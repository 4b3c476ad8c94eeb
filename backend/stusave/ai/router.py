"""FastAPI router for the smart-advice and next-day spending prediction endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, ValidationError

from stusave.ai.gemini_client import GeminiClient, GeminiError, GeminiRequestError
from stusave.ai.prompt import (
    ADVICE_RESPONSE_SCHEMA,
    PREDICTION_RESPONSE_SCHEMA,
    build_advice_prompt,
    build_prediction_prompt,
)
from stusave.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


class AdviceRequest(BaseModel):
    spending_summary: str = Field(min_length=1, max_length=4000)
    budget: float = Field(ge=0)


class AdviceResponse(BaseModel):
    advice: str = Field(min_length=1)


class SpendingRecord(BaseModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    amount: float
    day_of_week: str = Field(min_length=1, max_length=16)


class PredictionRequest(BaseModel):
    history: list[SpendingRecord] = Field(default_factory=list)
    currency_symbol: str = Field(min_length=1, max_length=8)
    tomorrow_day_of_week: str = Field(min_length=1, max_length=16)


class PredictionResponse(BaseModel):
    predicted_amount: float
    reasoning: str


def _get_gemini_client() -> GeminiClient:
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
    )


def _require_api_key() -> None:
    if not settings.gemini_api_key:
        raise HTTPException(
            status_code=503,
            detail="AI features are unavailable because GEMINI_API_KEY is not configured.",
        )


async def _generate(prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
    client = _get_gemini_client()
    try:
        return await client.generate_json(prompt, schema)
    except GeminiRequestError as exc:
        logger.warning("Gemini request failed with status %s", exc.status_code)
        if exc.status_code == 429:
            raise HTTPException(status_code=503, detail="AI is rate-limited right now. Try again shortly.") from exc
        raise HTTPException(status_code=502, detail="AI request failed. Please try again.") from exc
    except GeminiError as exc:
        logger.warning("Gemini response could not be parsed: %s", exc)
        raise HTTPException(status_code=502, detail="AI response could not be processed.") from exc


@router.post("/advice", response_model=AdviceResponse)
async def smart_advice(payload: AdviceRequest) -> AdviceResponse:
    """
    One short money-saving tip for the given spending summary.

    Example request:
    {"spending_summary": "Food: 1200, Travel: 300", "budget": 5000}
    """
    _require_api_key()
    data = await _generate(
        build_advice_prompt(payload.spending_summary.strip(), payload.budget),
        ADVICE_RESPONSE_SCHEMA,
    )

    try:
        return AdviceResponse(**data)
    except ValidationError as exc:
        raise HTTPException(status_code=502, detail="AI response could not be processed.") from exc


@router.post("/predict-spending", response_model=PredictionResponse)
async def predict_spending(payload: PredictionRequest) -> PredictionResponse:
    """Predict tomorrow's total spend from recent daily history."""
    _require_api_key()
    history = [record.model_dump() for record in payload.history]
    data = await _generate(
        build_prediction_prompt(history, payload.currency_symbol, payload.tomorrow_day_of_week),
        PREDICTION_RESPONSE_SCHEMA,
    )

    try:
        return PredictionResponse(**data)
    except ValidationError as exc:
        raise HTTPException(status_code=502, detail="AI response could not be processed.") from exc
