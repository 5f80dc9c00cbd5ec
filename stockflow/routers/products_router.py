from typing import Any

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.orm import Session

from stockflow.db.repository import InventoryRepository
from stockflow.db.session import get_db
from stockflow.responses import envelope
from stockflow.services.validation import MAX_INT
from stockflow.services.products import create_product, get_product, product_to_dict

router = APIRouter()


@router.post("", status_code=201)
def create(payload: Any = Body(default=None), db: Session = Depends(get_db)):
    product = create_product(InventoryRepository(db), payload)
    return envelope({"productId": product.id}, "Product created")


@router.get("/{product_id}")
def read(product_id: int = Path(ge=1, le=MAX_INT), db: Session = Depends(get_db)):
    product = get_product(InventoryRepository(db), product_id)
    return envelope(product_to_dict(product))
