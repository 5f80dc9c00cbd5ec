from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from stockflow.db.models import (
    Company, Warehouse, Supplier, Product, ProductSupplier, Inventory,
    InventoryHistory, ChangeType,
)


class InventoryRepository:
    """Data access for products, stock and their audit trail.

    Wraps one SQLAlchemy session; services receive an instance explicitly
    and own the transaction boundary through commit()/rollback().
    """

    def __init__(self, db: Session):
        self.db = db

    # -- lookups --------------------------------------------------------

    def get_company(self, company_id: int) -> Company | None:
        return self.db.get(Company, company_id)

    def get_warehouse(self, warehouse_id: int) -> Warehouse | None:
        return self.db.get(Warehouse, warehouse_id)

    def get_supplier(self, supplier_id: int) -> Supplier | None:
        return self.db.get(Supplier, supplier_id)

    def get_product(self, product_id: int) -> Product | None:
        return self.db.get(Product, product_id)

    def find_product_by_sku(self, sku: str) -> Product | None:
        return self.db.execute(select(Product).where(Product.sku == sku)).scalar_one_or_none()

    def get_inventory(self, inventory_id: int, for_update: bool = False) -> Inventory | None:
        stmt = select(Inventory).where(Inventory.id == inventory_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def find_inventory(self, product_id: int, warehouse_id: int, for_update: bool = False) -> Inventory | None:
        stmt = select(Inventory).where(
            Inventory.product_id == product_id,
            Inventory.warehouse_id == warehouse_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def history_for(self, inventory_id: int) -> list[InventoryHistory]:
        stmt = (
            select(InventoryHistory)
            .where(InventoryHistory.inventory_id == inventory_id)
            .order_by(InventoryHistory.id.asc())
        )
        return list(self.db.execute(stmt).scalars())

    # -- company-wide queries ------------------------------------------

    def inventory_for_company(self, company_id: int):
        """(Inventory, Product, Warehouse) rows in the company's warehouses."""
        stmt = (
            select(Inventory, Product, Warehouse)
            .join(Product, Product.id == Inventory.product_id)
            .join(Warehouse, Warehouse.id == Inventory.warehouse_id)
            .where(Warehouse.company_id == company_id)
            .order_by(Warehouse.id.asc(), Product.id.asc())
        )
        return self.db.execute(stmt).all()

    def units_sold_since(self, inventory_ids: list[int], since: datetime, until: datetime) -> dict[int, int]:
        """Units sold per inventory row from SALE entries in [since, until]."""
        if not inventory_ids:
            return {}
        stmt = (
            select(
                InventoryHistory.inventory_id,
                func.coalesce(func.sum(-InventoryHistory.quantity_change), 0).label("units"),
            )
            .where(InventoryHistory.inventory_id.in_(inventory_ids))
            .where(InventoryHistory.change_type == ChangeType.SALE)
            .where(InventoryHistory.created_at >= since)
            .where(InventoryHistory.created_at <= until)
            .group_by(InventoryHistory.inventory_id)
        )
        return {r.inventory_id: int(r.units) for r in self.db.execute(stmt)}

    def primary_suppliers(self, product_ids: list[int]) -> dict[int, Supplier]:
        """First supplier per product: primary link first, then lowest supplier id."""
        if not product_ids:
            return {}
        stmt = (
            select(ProductSupplier.product_id, Supplier)
            .join(Supplier, Supplier.id == ProductSupplier.supplier_id)
            .where(ProductSupplier.product_id.in_(product_ids))
            .order_by(
                ProductSupplier.product_id.asc(),
                ProductSupplier.is_primary.desc(),
                Supplier.id.asc(),
            )
        )
        suppliers: dict[int, Supplier] = {}
        for product_id, supplier in self.db.execute(stmt):
            suppliers.setdefault(product_id, supplier)
        return suppliers

    # -- writes ---------------------------------------------------------

    def save(self, obj):
        self.db.add(obj)
        self.db.flush()
        return obj

    def record_history(self, inventory: Inventory, change_type: ChangeType, quantity_change: int) -> InventoryHistory:
        entry = InventoryHistory(
            inventory_id=inventory.id,
            change_type=change_type,
            quantity_change=quantity_change,
        )
        return self.save(entry)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
