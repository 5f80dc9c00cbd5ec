"""Shared fixtures: in-memory SQLite database, seeded company data, API client."""

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockflow.db.models import (
    Base, Company, Warehouse, Supplier, Product, ProductSupplier, Inventory,
    InventoryHistory, ChangeType, utcnow,
)
from stockflow.db.repository import InventoryRepository
from stockflow.db.session import get_db
from stockflow.main import app
from stockflow.settings import Settings, get_settings


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db):
    return InventoryRepository(db)


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        DEFAULT_LOW_STOCK_THRESHOLD=10,
        SALES_WINDOW_DAYS=30,
        ALERTS_REQUIRE_RECENT_SALES=True,
        CREATE_TABLES=False,
    )


@pytest.fixture
def client(db, settings):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def company_data(db):
    """Two companies; company A has two warehouses and a supplier."""
    acme = Company(name="Acme")
    other = Company(name="Other Co")
    db.add_all([acme, other])
    db.flush()

    main = Warehouse(company_id=acme.id, name="Main", location="Pune")
    overflow = Warehouse(company_id=acme.id, name="Overflow", location="Mumbai")
    foreign = Warehouse(company_id=other.id, name="Elsewhere", location="Delhi")
    supplier = Supplier(name="Supplier Corp", contact_email="orders@supplier.com",
                        contact_phone="555-0100")
    db.add_all([main, overflow, foreign, supplier])
    db.commit()

    return {
        "company": acme,
        "other_company": other,
        "warehouse": main,
        "overflow": overflow,
        "foreign_warehouse": foreign,
        "supplier": supplier,
    }


@pytest.fixture
def make_stock(db):
    """Insert a product with an inventory row directly, bypassing the API."""

    def _make(sku, warehouse, quantity, threshold=None, supplier=None, name=None):
        product = Product(name=name or f"Widget {sku}", sku=sku, price=Decimal("9.99"),
                          low_stock_threshold=threshold)
        db.add(product)
        db.flush()
        inventory = Inventory(product_id=product.id, warehouse_id=warehouse.id, quantity=quantity)
        db.add(inventory)
        db.flush()
        db.add(InventoryHistory(inventory_id=inventory.id, change_type=ChangeType.ADD,
                                quantity_change=quantity))
        if supplier is not None:
            db.add(ProductSupplier(product_id=product.id, supplier_id=supplier.id, is_primary=True))
        db.commit()
        return product, inventory

    return _make


@pytest.fixture
def record_sale(db):
    """Append a SALE history entry ``days_ago`` days back without touching quantity."""

    def _sale(inventory, units, days_ago=1):
        db.add(InventoryHistory(
            inventory_id=inventory.id,
            change_type=ChangeType.SALE,
            quantity_change=-units,
            created_at=utcnow() - timedelta(days=days_ago),
        ))
        db.commit()

    return _sale
