import pytest
from pydantic import ValidationError

from stockflow.services.errors import ConflictError, InternalError, NotFoundError, StockFlowError
from stockflow.settings import Settings


def test_root(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json()["data"] == {"ok": True}


def test_error_carries_code_and_details():
    err = ConflictError("SKU X already exists", code="DUPLICATE_SKU", details={"sku": "X"})

    assert err.status_code == 409
    assert err.details == {"sku": "X"}
    assert str(err) == "[DUPLICATE_SKU] SKU X already exists"


def test_error_defaults():
    assert NotFoundError().message == "Resource not found"
    assert InternalError().status_code == 500
    assert issubclass(NotFoundError, StockFlowError)


def test_malformed_json_is_400(client):
    resp = client.post("/api/products", content=b"{not json",
                       headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["status"] == "error"


@pytest.mark.parametrize("overrides", [
    {"SALES_WINDOW_DAYS": 0},
    {"SALES_WINDOW_DAYS": 400},
    {"DEFAULT_LOW_STOCK_THRESHOLD": -1},
])
def test_out_of_range_settings_fail_on_load(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_oversized_path_id_is_400(client):
    resp = client.get(f"/api/companies/{2**63}/alerts/low-stock")

    assert resp.status_code == 400
    assert resp.json()["status"] == "error"
