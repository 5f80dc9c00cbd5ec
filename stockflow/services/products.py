import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stockflow.db.models import Product, Inventory, ProductSupplier, ChangeType
from stockflow.db.repository import InventoryRepository
from stockflow.services.errors import ConflictError, NotFoundError, InternalError
from stockflow.services.validation import add_error, check_int, check_body, raise_if_errors

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "sku", "price", "warehouse_id")

CENT = Decimal("0.01")
MAX_PRICE = Decimal(10) ** 8


def validate_product_payload(payload) -> dict:
    """Check a creation request and return the cleaned values.

    Every violated field is reported at once; nothing is written.
    """
    check_body(payload)
    errors: list[dict] = []

    for field in REQUIRED_FIELDS:
        if payload.get(field) is None:
            add_error(errors, field=field, code="REQUIRED", message=f"{field} is required")

    name = payload.get("name")
    if name is not None and (not isinstance(name, str) or not name.strip()):
        add_error(errors, field="name", code="BAD_STRING",
                  message="name must be a non-empty string", value=name)

    sku = payload.get("sku")
    if sku is not None and (not isinstance(sku, str) or not sku.strip()):
        add_error(errors, field="sku", code="BAD_STRING",
                  message="sku must be a non-empty string", value=sku)
    elif sku is not None and sku != sku.strip():
        add_error(errors, field="sku", code="BAD_STRING",
                  message="sku must not have leading or trailing whitespace", value=sku)

    price = None
    raw_price = payload.get("price")
    if raw_price is not None:
        try:
            if isinstance(raw_price, bool):
                raise InvalidOperation()
            price = Decimal(str(raw_price))
            # Must fit NUMERIC(10, 2) exactly
            if not price.is_finite() or price < 0 or price >= MAX_PRICE:
                raise InvalidOperation()
            if price != price.quantize(CENT):
                raise InvalidOperation()
            price = price.quantize(CENT)
        except InvalidOperation:
            add_error(errors, field="price", code="BAD_NUMBER",
                      message="price must be a decimal >= 0 with at most 8 integer digits "
                              "and 2 decimal places", value=raw_price)
            price = None

    warehouse_id = check_int(errors, payload, "warehouse_id", minimum=1)
    quantity = check_int(errors, payload, "initial_quantity", minimum=0)
    if quantity is None:
        quantity = 0
    threshold = check_int(errors, payload, "low_stock_threshold", minimum=0)
    supplier_id = check_int(errors, payload, "supplier_id", minimum=1)

    description = payload.get("description")
    if description is not None and not isinstance(description, str):
        add_error(errors, field="description", code="BAD_STRING",
                  message="description must be a string", value=description)

    is_bundle = payload.get("is_bundle", False)
    if not isinstance(is_bundle, bool):
        add_error(errors, field="is_bundle", code="BAD_BOOL",
                  message="is_bundle must be a boolean", value=is_bundle)

    raise_if_errors(errors)

    return {
        "name": name.strip(),
        "sku": sku,
        "price": price,
        "warehouse_id": warehouse_id,
        "initial_quantity": quantity,
        "description": description,
        "is_bundle": is_bundle,
        "low_stock_threshold": threshold,
        "supplier_id": supplier_id,
    }


def create_product(repo: InventoryRepository, payload) -> Product:
    """Create a product and seed its inventory row in one transaction.

    The product, its inventory row, the ADD history entry for the initial
    quantity and the optional supplier link are committed together or not
    at all.
    """
    data = validate_product_payload(payload)

    if repo.get_warehouse(data["warehouse_id"]) is None:
        raise NotFoundError(f"Warehouse {data['warehouse_id']} not found", code="WAREHOUSE_NOT_FOUND")
    if data["supplier_id"] is not None and repo.get_supplier(data["supplier_id"]) is None:
        raise NotFoundError(f"Supplier {data['supplier_id']} not found", code="SUPPLIER_NOT_FOUND")
    if repo.find_product_by_sku(data["sku"]) is not None:
        logger.warning("Rejected duplicate SKU %s", data["sku"])
        raise ConflictError(f"SKU {data['sku']} already exists", code="DUPLICATE_SKU")

    try:
        product = repo.save(Product(
            name=data["name"],
            sku=data["sku"],
            price=data["price"],
            description=data["description"],
            is_bundle=data["is_bundle"],
            low_stock_threshold=data["low_stock_threshold"],
        ))
        inventory = repo.save(Inventory(
            product_id=product.id,
            warehouse_id=data["warehouse_id"],
            quantity=data["initial_quantity"],
        ))
        repo.record_history(inventory, ChangeType.ADD, data["initial_quantity"])
        if data["supplier_id"] is not None:
            repo.save(ProductSupplier(
                product_id=product.id,
                supplier_id=data["supplier_id"],
                is_primary=True,
            ))
        repo.commit()
    except IntegrityError as e:
        repo.rollback()
        # Lost a race with a concurrent insert of the same SKU
        if repo.find_product_by_sku(data["sku"]) is not None:
            logger.warning("Rejected duplicate SKU %s on insert", data["sku"])
            raise ConflictError(f"SKU {data['sku']} already exists", code="DUPLICATE_SKU") from e
        logger.exception("Integrity error while creating product %s", data["sku"])
        raise InternalError() from e
    except SQLAlchemyError as e:
        repo.rollback()
        logger.exception("Database error while creating product %s", data["sku"])
        raise InternalError() from e

    logger.info("Created product %s (id=%s) in warehouse %s with quantity %s",
                product.sku, product.id, data["warehouse_id"], data["initial_quantity"])
    return product


def get_product(repo: InventoryRepository, product_id: int) -> Product:
    product = repo.get_product(product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", code="PRODUCT_NOT_FOUND")
    return product


def product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "price": str(product.price),
        "description": product.description,
        "is_bundle": product.is_bundle,
        "low_stock_threshold": product.low_stock_threshold,
        "inventory": [
            {"inventory_id": inv.id, "warehouse_id": inv.warehouse_id, "quantity": inv.quantity}
            for inv in sorted(product.inventory, key=lambda inv: inv.warehouse_id)
        ],
    }
