import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from stockflow.db.models import utcnow
from stockflow.db.repository import InventoryRepository
from stockflow.services.errors import NotFoundError, InternalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupplierContact:
    id: int
    name: str
    contact_email: str | None
    contact_phone: str | None


@dataclass(frozen=True)
class LowStockAlert:
    product_id: int
    product_name: str
    sku: str
    warehouse_id: int
    warehouse_name: str
    current_stock: int
    threshold: int
    days_until_stockout: float | None
    supplier: SupplierContact | None

    def to_dict(self) -> dict:
        return asdict(self)


def days_until_stockout(quantity: int, units_sold: int, window_days: int) -> float | None:
    """Days of cover at the trailing average daily sales rate.

    None when nothing sold in the window (rate of zero).
    """
    daily_rate = units_sold / float(window_days)
    if daily_rate <= 0:
        return None
    return round(quantity / daily_rate, 1)


def get_low_stock_alerts(
    repo: InventoryRepository,
    company_id: int,
    *,
    default_threshold: int,
    window_days: int = 30,
    require_recent_sales: bool = True,
    as_of: datetime | None = None,
) -> list[LowStockAlert]:
    """Inventory rows of a company at or below their low-stock threshold.

    Rows are evaluated per (product, warehouse). A product's own
    low_stock_threshold wins over ``default_threshold``. With
    ``require_recent_sales`` rows without a SALE in the trailing
    ``window_days`` are skipped. Results are ordered by warehouse id, then
    product id. Read-only.
    """
    if window_days < 1:
        raise ValueError("window_days must be >= 1")

    as_of = as_of or utcnow()
    since = as_of - timedelta(days=window_days)

    try:
        if repo.get_company(company_id) is None:
            raise NotFoundError(f"Company {company_id} not found", code="COMPANY_NOT_FOUND")

        candidates = []
        for inventory, product, warehouse in repo.inventory_for_company(company_id):
            threshold = product.low_stock_threshold
            if threshold is None:
                threshold = default_threshold
            if inventory.quantity <= threshold:
                candidates.append((inventory, product, warehouse, threshold))

        sold = repo.units_sold_since([c[0].id for c in candidates], since, as_of)
        suppliers = repo.primary_suppliers(sorted({c[1].id for c in candidates}))
    except SQLAlchemyError as e:
        logger.exception("Database error while evaluating low stock for company %s", company_id)
        raise InternalError() from e

    alerts: list[LowStockAlert] = []
    for inventory, product, warehouse, threshold in candidates:
        units_sold = sold.get(inventory.id, 0)
        # No recent sales: possibly discontinued
        if require_recent_sales and units_sold <= 0:
            continue

        supplier = suppliers.get(product.id)
        alerts.append(LowStockAlert(
            product_id=product.id,
            product_name=product.name,
            sku=product.sku,
            warehouse_id=warehouse.id,
            warehouse_name=warehouse.name,
            current_stock=inventory.quantity,
            threshold=threshold,
            days_until_stockout=days_until_stockout(inventory.quantity, units_sold, window_days),
            supplier=SupplierContact(
                id=supplier.id,
                name=supplier.name,
                contact_email=supplier.contact_email,
                contact_phone=supplier.contact_phone,
            ) if supplier is not None else None,
        ))

    logger.info("Company %s: %s low-stock alert(s) from %s understocked row(s)",
                company_id, len(alerts), len(candidates))
    return alerts
