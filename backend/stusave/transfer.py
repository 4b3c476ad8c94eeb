"""Transfer router: register a payload for another device, or redeem one by id."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from .exchange import get_exchange_store
from .services.transfer_errors import (
    TransferExpiredError,
    TransferNotFoundError,
    TransferStoreError,
)
from .services.transfer_store import ExchangeStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transfer", tags=["transfer"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("")
async def register_transfer(
    request: Request,
    store: ExchangeStore | None = Depends(get_exchange_store),
) -> Any:
    """
    Store the posted JSON body for five minutes and return its one-time id.

    Example response:
    {"id": "ab12cd"}
    """
    if store is None:
        logger.error("Exchange store is not initialized")
        return _error(500, "Failed to process request")

    try:
        payload = await request.json()
        transfer_id = store.register(payload)
    except (ValueError, TransferStoreError):
        logger.exception("Failed to register transfer payload")
        return _error(500, "Failed to process request")

    return {"id": transfer_id}


@router.get("")
async def redeem_transfer(
    transfer_id: str | None = Query(default=None, alias="id"),
    store: ExchangeStore | None = Depends(get_exchange_store),
) -> Any:
    """
    Return the payload registered under `id` and delete it.

    A second request for the same id gets 404; a request after the TTL gets 410.
    """
    if transfer_id is None or not transfer_id.strip():
        return _error(400, "An ID is required.")

    if store is None:
        logger.error("Exchange store is not initialized")
        return _error(500, "Failed to process request")

    try:
        payload = store.redeem(transfer_id.strip())
    except TransferExpiredError:
        return _error(410, "This transfer code has expired. Generate a new one.")
    except TransferNotFoundError:
        return _error(404, "Data not found. It may have been used already.")

    return JSONResponse(content=payload)
