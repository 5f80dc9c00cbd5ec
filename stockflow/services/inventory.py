import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stockflow.db.models import Inventory, InventoryHistory, ChangeType
from stockflow.db.repository import InventoryRepository
from stockflow.services.errors import InvalidInputError, ConflictError, NotFoundError, InternalError
from stockflow.services.validation import (
    MAX_INT, add_error, check_int, check_body, raise_if_errors,
)

logger = logging.getLogger(__name__)

# Sign applied to the requested quantity for single-row movements
MOVEMENT_SIGNS = {
    ChangeType.ADD: 1,
    ChangeType.REMOVE: -1,
    ChangeType.SALE: -1,
}


def _check_quantity(errors: list, payload: dict):
    return check_int(errors, payload, "quantity", minimum=1, required=True)


def _check_capacity(inventory: Inventory, delta: int):
    if inventory.quantity + delta > MAX_INT:
        raise InvalidInputError(
            f"Quantity would exceed {MAX_INT}: {inventory.quantity} on hand, {delta} added",
            code="QUANTITY_OVERFLOW",
            details={"errors": [{"field": "quantity", "code": "BAD_INT",
                                 "message": f"resulting quantity must not exceed {MAX_INT}",
                                 "value": str(abs(delta))}]},
        )


def record_movement(repo: InventoryRepository, inventory_id: int, payload) -> Inventory:
    """Apply an ADD, REMOVE or SALE to one inventory row with its history entry."""
    check_body(payload)
    errors: list[dict] = []

    raw_type = payload.get("change_type")
    change_type = None
    if raw_type is None:
        add_error(errors, field="change_type", code="REQUIRED", message="change_type is required")
    else:
        try:
            change_type = ChangeType(str(raw_type).upper())
        except ValueError:
            pass
        if change_type not in MOVEMENT_SIGNS:
            add_error(errors, field="change_type", code="BAD_CHOICE",
                      message="change_type must be one of ADD, REMOVE, SALE", value=raw_type)

    quantity = _check_quantity(errors, payload)
    raise_if_errors(errors)

    try:
        inventory = repo.get_inventory(inventory_id, for_update=True)
        if inventory is None:
            raise NotFoundError(f"Inventory {inventory_id} not found", code="INVENTORY_NOT_FOUND")

        delta = MOVEMENT_SIGNS[change_type] * quantity
        if inventory.quantity + delta < 0:
            raise InvalidInputError(
                f"Insufficient stock: {inventory.quantity} on hand, {quantity} requested",
                code="INSUFFICIENT_STOCK",
                details={"errors": [{"field": "quantity", "code": "INSUFFICIENT_STOCK",
                                     "message": "quantity exceeds stock on hand",
                                     "value": str(quantity)}]},
            )
        _check_capacity(inventory, delta)

        inventory.quantity += delta
        repo.save(inventory)
        repo.record_history(inventory, change_type, delta)
        repo.commit()
    except (InvalidInputError, NotFoundError):
        repo.rollback()
        raise
    except SQLAlchemyError as e:
        repo.rollback()
        logger.exception("Database error while recording %s on inventory %s", change_type, inventory_id)
        raise InternalError() from e

    logger.info("Recorded %s of %s on inventory %s (now %s)",
                change_type.value, quantity, inventory_id, inventory.quantity)
    return inventory


def transfer_stock(repo: InventoryRepository, payload) -> tuple[Inventory, Inventory]:
    """Move stock of one product between two warehouses of the same company.

    The destination inventory row is created when missing. Both rows get a
    TRANSFER history entry; the two deltas sum to zero.
    """
    check_body(payload)
    errors: list[dict] = []

    for field in ("product_id", "from_warehouse_id", "to_warehouse_id"):
        check_int(errors, payload, field, minimum=1, required=True)
    quantity = _check_quantity(errors, payload)
    raise_if_errors(errors)

    product_id = payload["product_id"]
    from_id = payload["from_warehouse_id"]
    to_id = payload["to_warehouse_id"]
    if from_id == to_id:
        raise InvalidInputError("Source and destination warehouses must differ", code="SAME_WAREHOUSE")

    try:
        source_wh = repo.get_warehouse(from_id)
        dest_wh = repo.get_warehouse(to_id)
        if source_wh is None:
            raise NotFoundError(f"Warehouse {from_id} not found", code="WAREHOUSE_NOT_FOUND")
        if dest_wh is None:
            raise NotFoundError(f"Warehouse {to_id} not found", code="WAREHOUSE_NOT_FOUND")
        if source_wh.company_id != dest_wh.company_id:
            raise InvalidInputError("Warehouses belong to different companies", code="CROSS_COMPANY")

        # Lock both rows in ascending warehouse order so opposite transfers cannot deadlock
        locked = {
            warehouse_id: repo.find_inventory(product_id, warehouse_id, for_update=True)
            for warehouse_id in sorted((from_id, to_id))
        }
        source = locked[from_id]
        dest = locked[to_id]

        if source is None:
            raise NotFoundError(
                f"Product {product_id} has no inventory in warehouse {from_id}",
                code="INVENTORY_NOT_FOUND",
            )
        if source.quantity < quantity:
            raise InvalidInputError(
                f"Insufficient stock: {source.quantity} on hand, {quantity} requested",
                code="INSUFFICIENT_STOCK",
            )

        if dest is None:
            dest = repo.save(Inventory(product_id=product_id, warehouse_id=to_id, quantity=0))
        _check_capacity(dest, quantity)

        source.quantity -= quantity
        dest.quantity += quantity
        repo.save(source)
        repo.save(dest)
        repo.record_history(source, ChangeType.TRANSFER, -quantity)
        repo.record_history(dest, ChangeType.TRANSFER, quantity)
        repo.commit()
    except (InvalidInputError, NotFoundError):
        repo.rollback()
        raise
    except IntegrityError as e:
        repo.rollback()
        # A concurrent request created the destination row first
        logger.warning("Concurrent transfer created inventory for product %s in warehouse %s",
                       product_id, to_id)
        raise ConflictError(
            f"Inventory for product {product_id} in warehouse {to_id} was created concurrently; retry",
            code="CONCURRENT_UPDATE",
        ) from e
    except SQLAlchemyError as e:
        repo.rollback()
        logger.exception("Database error while transferring product %s from %s to %s",
                         product_id, from_id, to_id)
        raise InternalError() from e

    logger.info("Transferred %s of product %s from warehouse %s to %s",
                quantity, product_id, from_id, to_id)
    return source, dest


def get_history(repo: InventoryRepository, inventory_id: int) -> list[InventoryHistory]:
    if repo.get_inventory(inventory_id) is None:
        raise NotFoundError(f"Inventory {inventory_id} not found", code="INVENTORY_NOT_FOUND")
    return repo.history_for(inventory_id)


def inventory_to_dict(inventory: Inventory) -> dict:
    return {
        "inventory_id": inventory.id,
        "product_id": inventory.product_id,
        "warehouse_id": inventory.warehouse_id,
        "quantity": inventory.quantity,
    }


def history_to_dict(entry: InventoryHistory) -> dict:
    return {
        "id": entry.id,
        "inventory_id": entry.inventory_id,
        "change_type": entry.change_type.value,
        "quantity_change": entry.quantity_change,
        "created_at": entry.created_at.isoformat(),
    }
