from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from stockflow.db.repository import InventoryRepository
from stockflow.db.session import get_db
from stockflow.responses import envelope
from stockflow.services.validation import MAX_INT
from stockflow.services.alerts import get_low_stock_alerts
from stockflow.settings import Settings, get_settings

router = APIRouter()


@router.get("/{company_id}/alerts/low-stock")
def low_stock_alerts(
    company_id: int = Path(ge=1, le=MAX_INT),
    days: int | None = Query(default=None, ge=1, le=365),
    require_recent_sales: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    alerts = get_low_stock_alerts(
        InventoryRepository(db),
        company_id,
        default_threshold=settings.DEFAULT_LOW_STOCK_THRESHOLD,
        window_days=days or settings.SALES_WINDOW_DAYS,
        require_recent_sales=(
            settings.ALERTS_REQUIRE_RECENT_SALES if require_recent_sales is None else require_recent_sales
        ),
    )
    return envelope(
        {"alerts": [a.to_dict() for a in alerts], "total_alerts": len(alerts)},
        f"{len(alerts)} low-stock alert(s)",
    )
