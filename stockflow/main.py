import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from stockflow.db.session import init_db
from stockflow.logging_setup import configure_logging
from stockflow.responses import error_response
from stockflow.routers.alerts_router import router as alerts_router
from stockflow.routers.inventory_router import router as inventory_router
from stockflow.routers.products_router import router as products_router
from stockflow.services.errors import StockFlowError, InternalError
from stockflow.settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if get_settings().CREATE_TABLES:
        init_db()
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="StockFlow API", lifespan=lifespan)

    @app.get("/")
    def root():
        return {"status": "success", "message": "stockflow", "data": {"ok": True}}

    @app.exception_handler(StockFlowError)
    async def handle_stockflow_error(request: Request, exc: StockFlowError):
        if isinstance(exc, InternalError):
            # Traceback was logged where the failure was caught; keep the body opaque
            return error_response(500, InternalError.default_message)
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc)
        return error_response(exc.status_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ())[1:]) or "*",
                "code": "BAD_REQUEST",
                "message": err.get("msg", "invalid value"),
                "value": "",
            }
            for err in exc.errors()
        ]
        return error_response(400, "Invalid request", {"errors": errors})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, InternalError.default_message)

    app.include_router(products_router, prefix="/api/products", tags=["products"])
    app.include_router(inventory_router, prefix="/api/inventory", tags=["inventory"])
    app.include_router(alerts_router, prefix="/api/companies", tags=["alerts"])
    return app


app = create_app()
