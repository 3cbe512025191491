# bakery_orders/app.py
import logging

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config, orders
from .db import close_pool, fetch_one, get_conn, open_pool
from .errors import (
    BakeryOrdersError,
    ConfigurationError,
    OrderNotFoundError,
    PersistenceError,
    StorageTimeoutError,
    ValidationError,
)
from .models import (
    AdminOrderDetailOut,
    BulkDeleteIn,
    BulkDeleteOut,
    OrderCreatedOut,
    OrderDetailOut,
    OrderIn,
    OrderListOut,
    QuoteIn,
    QuoteOut,
    SettingsOut,
    SettingsPatch,
    StatusOut,
    StatusPatch,
    WhatsAppLinkOut,
)
from .pricing import compute_totals
from .settings import load_settings, validate_setting_updates
from .store import PgOrderStore, PgSettingsSource

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("bakery_orders")

app = FastAPI(title="Bakery Orders API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    OrderNotFoundError: 404,
    ConfigurationError: 500,
    PersistenceError: 500,
    StorageTimeoutError: 503,
}


@app.on_event("startup")
def startup():
    if not config.DATABASE_URL:
        logger.error("DATABASE_URL is not set; order endpoints will fail until it is configured")
        return
    open_pool()


@app.on_event("shutdown")
def shutdown():
    close_pool()


# Errors

@app.exception_handler(BakeryOrdersError)
async def bakery_error_handler(request: Request, exc: BakeryOrdersError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        # operational incident: keep the cause in the log, not in the response
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    content = {"detail": exc.public_message or str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        errors.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=400,
        content={"detail": "; ".join(errors), "error_type": "ValidationError", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "error_type": "InternalError"})


# Dependencies

def connection():
    with get_conn() as conn:
        yield conn
        # close any read-only transaction before the pool takes the connection back
        conn.rollback()


def get_store(conn=Depends(connection)):
    return PgOrderStore(conn)


def get_settings_source(conn=Depends(connection)):
    return PgSettingsSource(conn)


# Health

@app.get("/health/db")
def health_db():
    try:
        with get_conn() as conn:
            row = fetch_one(conn, "SELECT 1 AS ok")
            return {"db_ok": row["ok"] == 1}
    except Exception as e:
        logger.warning("database health check failed: %s", e)
        return JSONResponse(status_code=500, content={"db_ok": False, "error": type(e).__name__})


# Storefront

@app.get("/settings", response_model=SettingsOut)
def get_settings(source=Depends(get_settings_source)):
    return load_settings(source).to_dict()


@app.post("/pricing/quote", response_model=QuoteOut)
def price_quote(body: QuoteIn, source=Depends(get_settings_source)):
    """Display estimate for the checkout page. Nothing is stored."""
    prices = compute_totals(body.items, body.region, load_settings(source))
    return {
        "subtotal": prices.subtotal,
        "tax_rate": prices.tax_rate,
        "tax_amount": prices.tax_amount,
        "shipping_fee": prices.shipping_fee,
        "shipping_pending": prices.shipping_pending,
        "total": prices.total,
    }


@app.post("/orders", response_model=OrderCreatedOut, status_code=201)
def create_order(body: OrderIn, store=Depends(get_store), source=Depends(get_settings_source)):
    created = orders.create_order(store, source, body)
    order = created["order"]
    return {
        "id": order["id"],
        "order_number": order["order_number"],
        "subtotal": order["subtotal"],
        "tax_amount": order["tax_amount"],
        "shipping_cost": order["shipping_cost"],
        "shipping_pending": order["shipping_pending"],
        "total_amount": order["total_amount"],
        "whatsapp_url": created["whatsapp_url"],
    }


@app.get("/orders/{order_number}", response_model=OrderDetailOut)
def get_order(order_number: str, store=Depends(get_store)):
    return orders.get_order_by_number(store, order_number)


@app.get("/orders/{order_number}/whatsapp", response_model=WhatsAppLinkOut)
def get_order_whatsapp_link(order_number: str, store=Depends(get_store), source=Depends(get_settings_source)):
    url = orders.whatsapp_link_for(store, source, order_number)
    return {"order_number": order_number.strip().upper(), "whatsapp_url": url}


# Admin (auth is handled in front of this service)

@app.get("/admin/orders", response_model=OrderListOut)
def list_orders(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=200), store=Depends(get_store)):
    return orders.list_orders(store, page, limit)


@app.get("/admin/orders/{order_id}", response_model=AdminOrderDetailOut)
def get_order_admin(order_id: int, store=Depends(get_store)):
    return orders.get_order_by_id(store, order_id)


@app.patch("/admin/orders/{order_id}", response_model=StatusOut)
def update_order_status(order_id: int, body: StatusPatch, store=Depends(get_store)):
    return orders.update_order_status(store, order_id, body)


@app.delete("/admin/orders", response_model=BulkDeleteOut)
def delete_orders(body: BulkDeleteIn, store=Depends(get_store)):
    return orders.delete_orders(store, body.ids)


@app.patch("/admin/settings", response_model=SettingsOut)
def update_settings(body: SettingsPatch, source=Depends(get_settings_source)):
    source.upsert(validate_setting_updates(body.settings))
    return load_settings(source).to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
