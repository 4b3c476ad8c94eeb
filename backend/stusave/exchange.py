from fastapi import FastAPI, Request

from .config import settings
from .services.transfer_store import ExchangeStore


def build_exchange_store() -> ExchangeStore:
    return ExchangeStore(
        ttl_seconds=settings.transfer_ttl_seconds,
        id_length=settings.transfer_id_length,
        id_alphabet=settings.transfer_id_alphabet,
        max_id_attempts=settings.transfer_id_max_attempts,
        sweep_interval_seconds=settings.transfer_sweep_interval_seconds,
    )


async def init_exchange_store(app: FastAPI) -> None:
    store = build_exchange_store()
    store.start()
    app.state.exchange_store = store


async def close_exchange_store(app: FastAPI) -> None:
    store: ExchangeStore | None = getattr(app.state, "exchange_store", None)
    if store is None:
        return

    await store.stop()
    app.state.exchange_store = None


def get_exchange_store(request: Request) -> ExchangeStore | None:
    # None when the lifespan never ran; handlers answer with their own error shape.
    return getattr(request.app.state, "exchange_store", None)
