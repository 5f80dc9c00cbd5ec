from typing import Any

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.orm import Session

from stockflow.db.repository import InventoryRepository
from stockflow.db.session import get_db
from stockflow.responses import envelope
from stockflow.services.validation import MAX_INT
from stockflow.services.inventory import (
    record_movement, transfer_stock, get_history, inventory_to_dict, history_to_dict,
)

router = APIRouter()


@router.post("/transfers")
def transfer(payload: Any = Body(default=None), db: Session = Depends(get_db)):
    source, dest = transfer_stock(InventoryRepository(db), payload)
    return envelope(
        {"from": inventory_to_dict(source), "to": inventory_to_dict(dest)},
        "Stock transferred",
    )


@router.post("/{inventory_id}/movements")
def movement(
    inventory_id: int = Path(ge=1, le=MAX_INT),
    payload: Any = Body(default=None),
    db: Session = Depends(get_db),
):
    inventory = record_movement(InventoryRepository(db), inventory_id, payload)
    return envelope(inventory_to_dict(inventory), "Movement recorded")


@router.get("/{inventory_id}/history")
def history(inventory_id: int = Path(ge=1, le=MAX_INT), db: Session = Depends(get_db)):
    entries = get_history(InventoryRepository(db), inventory_id)
    return envelope({"history": [history_to_dict(e) for e in entries]})
