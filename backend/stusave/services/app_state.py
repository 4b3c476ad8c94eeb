"""Local application state: structural validation and JSON-file persistence.

The transfer handshake moves this state around as an opaque payload; the only
shape it relies on is `spendings` (a list) and `budget` (a number).
"""

from __future__ import annotations

import copy
import json
import logging
import os
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .transfer_errors import InvalidDataShapeError

logger = logging.getLogger(__name__)

DEFAULT_STATE: dict[str, Any] = {
    "name": "",
    "income": 0,
    "budget": 0,
    "spendings": [],
    "currency": "INR",
    "lendBorrow": [],
    "isSetupComplete": False,
}


class AppStateSnapshot(BaseModel):
    """Minimum recognizable shape of a StuSave state snapshot."""

    model_config = ConfigDict(extra="allow")

    spendings: list[Any] = Field(strict=True)
    budget: float = Field(strict=True)


def validate_transfer_payload(payload: Any) -> dict[str, Any]:
    """Return `payload` unchanged if it looks like app state, else raise."""
    if not isinstance(payload, dict):
        raise InvalidDataShapeError()

    try:
        AppStateSnapshot.model_validate(payload)
    except ValidationError as exc:
        raise InvalidDataShapeError() from exc

    return payload


def hydrate_state(payload: dict[str, Any]) -> dict[str, Any]:
    """Fill missing keys with defaults; old saves without the flag count as set up."""
    merged = copy.deepcopy(DEFAULT_STATE)
    merged.update(copy.deepcopy(payload))
    if payload.get("isSetupComplete") is None:
        merged["isSetupComplete"] = True
    return merged


Category = Literal["Food", "Books", "Travel", "Shopping", "Entertainment", "Utilities", "Other"]
LendBorrowType = Literal["debit", "credit"]
LendBorrowStatus = Literal["pending", "paid"]


class SpendingEntry(BaseModel):
    amount: float = Field(gt=0)
    category: Category
    description: str = ""
    date: str


class LendBorrowEntry(BaseModel):
    date: str
    person: str = Field(min_length=1)
    purpose: str = ""
    amount: float = Field(gt=0)
    type: LendBorrowType


def _new_id() -> str:
    return str(uuid.uuid4())


def _drop_by_id(state: dict[str, Any], key: str, record_id: str) -> None:
    state[key] = [record for record in state[key] if record.get("id") != record_id]


class LocalStateStore:
    """The device's persisted state.

    The transfer flow only ever calls `replace`; the record-level actions below
    back the regular app screens and persist after every change.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._state: dict[str, Any] = copy.deepcopy(DEFAULT_STATE)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return self.snapshot()

        try:
            stored = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Could not load state from %s", self.path)
            return self.snapshot()

        if isinstance(stored, dict):
            self._state = hydrate_state(stored)
        else:
            logger.warning("Ignoring non-object state in %s", self.path)

        return self.snapshot()

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._state)

    def replace(self, payload: dict[str, Any]) -> None:
        """Overwrite everything with `payload`; memory changes only after the write succeeds."""
        new_state = hydrate_state(payload)
        self._write(new_state)
        self._state = new_state

    def save(self) -> None:
        self._write(self._state)

    # -- record-level actions ---------------------------------------------

    def add_spending(self, entry: SpendingEntry) -> dict[str, Any]:
        record = {**entry.model_dump(), "id": _new_id()}
        self._update(lambda state: state["spendings"].insert(0, record))
        return copy.deepcopy(record)

    def delete_spending(self, spending_id: str) -> None:
        self._update(lambda state: _drop_by_id(state, "spendings", spending_id))

    def set_finances(self, *, income: float, budget: float) -> None:
        self._update(lambda state: state.update(income=income, budget=budget))

    def set_currency(self, currency: str) -> None:
        self._update(lambda state: state.update(currency=currency))

    def add_lend_borrow(self, entry: LendBorrowEntry) -> dict[str, Any]:
        record = {**entry.model_dump(), "id": _new_id(), "status": "pending"}
        self._update(lambda state: state["lendBorrow"].insert(0, record))
        return copy.deepcopy(record)

    def update_lend_borrow_status(self, record_id: str, status: LendBorrowStatus) -> None:
        if status not in ("pending", "paid"):
            raise ValueError(f"Unknown lend/borrow status: {status!r}")

        def apply(state: dict[str, Any]) -> None:
            for record in state["lendBorrow"]:
                if record.get("id") == record_id:
                    record["status"] = status

        self._update(apply)

    def delete_lend_borrow(self, record_id: str) -> None:
        self._update(lambda state: _drop_by_id(state, "lendBorrow", record_id))

    def complete_setup(self, *, name: str, income: float, budget: float) -> None:
        self._update(lambda state: state.update(name=name, income=income, budget=budget, isSetupComplete=True))

    def reset(self) -> None:
        """Back to a fresh install; the setup screen shows again."""
        new_state = copy.deepcopy(DEFAULT_STATE)
        self._write(new_state)
        self._state = new_state

    def _update(self, change: Callable[[dict[str, Any]], Any]) -> None:
        new_state = copy.deepcopy(self._state)
        change(new_state)
        self._write(new_state)
        self._state = new_state

    def _write(self, state: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(state, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.path)
