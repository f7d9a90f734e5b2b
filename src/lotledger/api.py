"""FastAPI REST API over the lot ledger for the point-of-sale client."""

import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Annotated, Any, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Load environment variables from .env file (find it relative to this file)
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)

from .alerts import ConsumptionReminder
from .auth import decode_access_token
from .database.engine import AsyncSessionLocal, close_db, init_db
from .errors import (
    ConcurrentUpdate,
    ExceedsAvailable,
    IdentityRequired,
    InsufficientLotStock,
    InsufficientStock,
    LedgerError,
    NotFound,
    NoValidStock,
    PermissionDenied,
    StoreError,
    ValidationError,
)
from .identity import StaffIdentity, StaticIdentityProvider
from .ledger import HistoryType, Item
from .service import LotLedger

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LedgerError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InsufficientStock: status.HTTP_409_CONFLICT,
    InsufficientLotStock: status.HTTP_409_CONFLICT,
    NoValidStock: status.HTTP_409_CONFLICT,
    ExceedsAvailable: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    IdentityRequired: status.HTTP_401_UNAUTHORIZED,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    ConcurrentUpdate: status.HTTP_409_CONFLICT,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# Pydantic models for API
class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Name of the item")
    threshold: int = Field(0, ge=0, description="Reorder level")
    supplier: Optional[str] = Field(None, description="Supplier name")
    category: Optional[str] = Field(None, description="Category")


class RestockRequest(BaseModel):
    quantity: int = Field(..., description="Amount received")
    expiration_date: str = Field(..., description="Expiration date (YYYY-MM-DD)")
    damages: int = Field(0, description="Amount damaged on arrival")


class QuantityRequest(BaseModel):
    quantity: int = Field(..., description="Amount to consume or mark damaged")


def _serialize_item(item: Item) -> dict[str, Any]:
    data = item.model_dump(mode="json")
    data["low_stock"] = item.is_low_stock
    return data


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage database lifecycle."""
    logger.info("Starting Lot Ledger API...")
    await init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title="Lot Ledger API",
    description="Batch-lot inventory ledger for restaurant point of sale",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration from environment
_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:8081,http://127.0.0.1:8081")
ALLOWED_ORIGINS = [origin.strip() for origin in _cors_origins.split(",") if origin.strip()]

# Security check: don't allow wildcard with credentials in production
_is_production = os.getenv("ENV", "development").lower() in ("production", "prod")
if _is_production and "*" in ALLOWED_ORIGINS:
    raise ValueError("CORS_ORIGINS cannot be '*' in production when credentials are enabled")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting
limiter = Limiter(key_func=get_remote_address, default_limits=["120/minute"])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return JSON 429 with Retry-After header.

    Kept synchronous: SlowAPIMiddleware only calls non-coroutine handlers.
    """
    retry_after = str(exc.limit.limit.get_expiry())
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded"},
        headers={"Retry-After": retry_after},
    )


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Render a ledger failure as a user-facing message with a stable code."""
    status_code = next(
        (ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS),
        status.HTTP_400_BAD_REQUEST,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


@app.get("/health")
async def health_check():
    """Health check endpoint - verifies DB connectivity."""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "dependencies": {"database": "healthy"},
        }
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "dependencies": {"database": "unhealthy"},
            },
        )


# ===== Identity =====

# API router for versioned endpoints, mounted at both /api and /api/v1
api_router = APIRouter()

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_staff(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)]
) -> Optional[StaffIdentity]:
    """Resolve the signed-in staff member from the bearer token.

    A missing token yields None so the ledger can report IdentityRequired on
    mutations; a token that fails to decode is rejected outright.
    """
    if credentials is None:
        return None

    staff = decode_access_token(credentials.credentials)
    if staff is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return staff


async def get_ledger(
    staff: Annotated[Optional[StaffIdentity], Depends(get_current_staff)],
) -> LotLedger:
    """Ledger bound to the request's staff identity."""
    return LotLedger(AsyncSessionLocal, StaticIdentityProvider(staff))


Ledger = Annotated[LotLedger, Depends(get_ledger)]


# ===== Items =====


@api_router.get("/items")
async def get_items(
    ledger: Ledger,
    category: Optional[str] = Query(None, description="Filter by category"),
):
    """List all items. Expired lots are swept before the list is returned."""
    items = await ledger.list_items(category=category)
    return {"count": len(items), "items": [_serialize_item(item) for item in items]}


@api_router.post("/items", status_code=status.HTTP_201_CREATED)
async def create_new_item(ledger: Ledger, item: ItemCreate):
    """Add a new item with no stock."""
    created = await ledger.create_item(
        name=item.name,
        threshold=item.threshold,
        supplier=item.supplier,
        category=item.category,
    )
    return {
        "status": "success",
        "message": f"Added {created.name}",
        "item": _serialize_item(created),
    }


@api_router.get("/items/expiring")
async def get_expiring_items(
    ledger: Ledger,
    days: Optional[int] = Query(None, ge=1, le=365, description="Number of days to look ahead"),
):
    """Get lots expiring within N days."""
    lots = await ledger.expiring_soon(days)
    return {"count": len(lots), "lots": lots}


@api_router.get("/items/low-stock")
async def get_low_stock_items(ledger: Ledger):
    """Get items at or below their reorder threshold."""
    items = await ledger.low_stock()
    return {"count": len(items), "items": [_serialize_item(item) for item in items]}


@api_router.get("/items/movement")
async def get_movement_report(
    ledger: Ledger,
    start: Optional[date] = Query(None, description="First day of the range (YYYY-MM-DD)"),
    end: Optional[date] = Query(None, description="Last day of the range (YYYY-MM-DD)"),
):
    """Get stock additions, deductions and net change per item over a date range."""
    return await ledger.movement(start, end)


@api_router.get("/items/{item_id}")
async def get_single_item(ledger: Ledger, item_id: int):
    """Get a single item by ID."""
    return _serialize_item(await ledger.get_item(item_id))


@api_router.delete("/items/{item_id}")
async def delete_existing_item(ledger: Ledger, item_id: int):
    """Delete an item and all of its lots and history."""
    await ledger.delete_item(item_id)
    return {"status": "success", "message": f"Removed item {item_id}"}


# ===== Ledger Operations =====


@api_router.post("/items/{item_id}/restock")
async def restock_item(ledger: Ledger, item_id: int, body: RestockRequest):
    """Add a dated lot to an item."""
    item = await ledger.restock(item_id, body.quantity, body.expiration_date, damages=body.damages)
    return {
        "status": "success",
        "message": "Item restocked successfully",
        "item": _serialize_item(item),
    }


@api_router.post("/items/{item_id}/consume")
async def consume_item(ledger: Ledger, item_id: int, body: QuantityRequest):
    """Consume from the oldest-expiring valid lot."""
    item = await ledger.consume(item_id, body.quantity)
    return {
        "status": "success",
        "message": "Item consumed successfully",
        "item": _serialize_item(item),
    }


@api_router.post("/items/{item_id}/lots/{lot_id}/consume")
async def consume_item_lot(ledger: Ledger, item_id: int, lot_id: str, body: QuantityRequest):
    """Consume from a specific lot."""
    item = await ledger.consume_from_lot(item_id, lot_id, body.quantity)
    return {
        "status": "success",
        "message": "Your daily consumption has been recorded.",
        "item": _serialize_item(item),
    }


@api_router.post("/items/{item_id}/lots/{lot_id}/damage")
async def report_lot_damage(ledger: Ledger, item_id: int, lot_id: str, body: QuantityRequest):
    """Record damaged stock against a lot."""
    item = await ledger.report_damage(item_id, lot_id, body.quantity)
    return {
        "status": "success",
        "message": f"Damage report of {body.quantity} items recorded",
        "item": _serialize_item(item),
    }


@api_router.delete("/items/{item_id}/lots/{lot_id}")
async def delete_item_lot(ledger: Ledger, item_id: int, lot_id: str):
    """Delete one lot, typically an expired batch."""
    item = await ledger.delete_lot(item_id, lot_id)
    return {
        "status": "success",
        "message": "Batch deleted successfully",
        "item": _serialize_item(item),
    }


@api_router.delete("/items/{item_id}/history/{history_type}/{index}")
async def reverse_history_entry(ledger: Ledger, item_id: int, history_type: HistoryType, index: int):
    """Undo a restock or consumption history entry."""
    item = await ledger.reverse_history(item_id, history_type, index)
    return {
        "status": "success",
        "message": f"{history_type.value.capitalize()} entry reversed",
        "item": _serialize_item(item),
    }


# ===== Reminders =====


@api_router.post("/reminders/consumption/check")
async def check_consumption_reminder():
    """Claim the daily consumption reminder if it is due."""
    due = await ConsumptionReminder(AsyncSessionLocal).check()
    return {
        "due": due,
        "message": "Please record your daily inventory consumption." if due else None,
    }


# ===== Mount API router at both /api and /api/v1 =====
app.include_router(api_router, prefix="/api/v1")
app.include_router(api_router, prefix="/api")


def run_api():
    """Run the FastAPI server."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)  # nosec B104


if __name__ == "__main__":
    run_api()
