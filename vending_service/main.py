# vending_service/main.py

"""
FastAPI Vending Service API.
Lists the products loaded in the machine, runs purchases against the shared
stock with a cool-down between purchases, and serves a filterable, sortable
purchase history.
"""
import logging
import math
import random
import sys
import time
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .config import get_settings
from .db import Base, SessionLocal, engine
from .dependencies import get_history_engine, get_purchase_engine, get_store
from .history import HistoryQueryEngine
from .purchases import PurchaseEngine, PurchaseOutcome
from .rate_limiter import CooldownRateLimiter
from .schemas import (
    BalanceResponse,
    ProductResponse,
    PurchaseFilter,
    PurchaseRecordResponse,
    PurchaseRequest,
    PurchaseResponse,
)
from .seed import seed_products
from .store import RecordStore

settings = get_settings()

# -----------------------------
# Configure Logging
# -----------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress noisy logs from third-party libraries for cleaner output
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)

PURCHASE_PATH = "/products/purchase"


# -----------------------------
# FastAPI App Initialization
# -----------------------------
app = FastAPI(
    title="Vending Service API",
    description="Lists products, runs purchases and serves purchase history for a vending machine",
    version="1.0.0",
)

# Enable CORS (for frontend dev/testing)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One limiter per process: the cool-down survives across requests, not restarts.
app.state.rate_limiter = CooldownRateLimiter(cooldown_seconds=settings.cooldown_seconds)


# --- FastAPI Event Handlers ---
@app.on_event("startup")
async def startup_event():
    """
    Handles application startup events.
    Ensures database tables are created (if not exist) and seeds the default
    catalogue into an empty machine.
    Includes a retry mechanism for database connection robustness.
    """
    max_retries = 10
    retry_delay_seconds = 5
    for i in range(max_retries):
        try:
            logger.info(
                f"Attempting to connect to the database and create tables (attempt {i+1}/{max_retries})..."
            )
            Base.metadata.create_all(bind=engine)
            logger.info("Successfully connected to the database and ensured tables exist.")
            break  # Exit loop if successful
        except OperationalError as e:
            logger.warning(f"Failed to connect to the database: {e}")
            if i < max_retries - 1:
                logger.info(f"Retrying in {retry_delay_seconds} seconds...")
                time.sleep(retry_delay_seconds)
            else:
                logger.critical(
                    f"Failed to connect to the database after {max_retries} attempts. Exiting application."
                )
                sys.exit(1)  # Critical failure: exit if DB connection is unavailable
        except Exception as e:
            logger.critical(
                f"An unexpected error occurred during database startup: {e}",
                exc_info=True,
            )
            sys.exit(1)

    if get_settings().seed_products:
        db = SessionLocal()
        try:
            seed_products(db)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not seed default products: {e}", exc_info=True)
        finally:
            db.close()


# --- Exception Handlers ---
@app.exception_handler(RequestValidationError)
async def purchase_validation_handler(request: Request, exc: RequestValidationError):
    """
    Malformed purchase bodies are a plain 400 like any other invalid purchase.
    Every other endpoint keeps FastAPI's 422 response.
    """
    if request.url.path == PURCHASE_PATH:
        logger.warning(f"Malformed purchase request: {exc.errors()}")
        body = PurchaseResponse(success=False, message="Invalid purchase request.")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=body.model_dump(by_alias=True, exclude_none=True),
        )
    return await request_validation_exception_handler(request, exc)


# --- Root Endpoint ---
@app.get("/", status_code=status.HTTP_200_OK, summary="Root endpoint")
async def read_root():
    """
    Returns a welcome message for the Vending Service.
    """
    return {"message": "Welcome to the Vending Service!"}


# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint")
async def health_check():
    """
    A simple health check endpoint to verify the service is running.
    Returns 200 OK if the service is alive.
    """
    return {"status": "ok", "service": "vending-service"}


# -----------------------------
# Product Endpoints
# -----------------------------


@app.get(
    "/products",
    response_model=List[ProductResponse],
    summary="List all products in the machine",
)
def list_products(store: RecordStore = Depends(get_store)):
    """
    Retrieves every product loaded in the machine with its price and stock.
    """
    try:
        products = store.list_products()
    except SQLAlchemyError as e:
        logger.error(f"Error listing products: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not list products.",
        )
    logger.info(f"Retrieved {len(products)} products.")
    return products


def _purchase_response(outcome: PurchaseOutcome) -> JSONResponse:
    body = PurchaseResponse(
        success=outcome.success,
        message=outcome.message,
        remaining=outcome.remaining,
        quantity_purchased=outcome.quantity_purchased,
        total_cost=float(outcome.total_cost) if outcome.total_cost is not None else None,
        retry_after=outcome.retry_after,
    )
    headers = None
    if outcome.retry_after is not None:
        headers = {"Retry-After": str(math.ceil(outcome.retry_after))}
    return JSONResponse(
        status_code=outcome.status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


@app.post(
    PURCHASE_PATH,
    response_model=PurchaseResponse,
    response_model_exclude_none=True,
    summary="Purchase a product",
    responses={
        400: {"description": "Invalid request or not enough stock"},
        404: {"description": "Product not found"},
        429: {"description": "Machine is busy; wait for the cool-down"},
        500: {"description": "The purchase could not be saved"},
    },
)
async def purchase_product(
    payload: Optional[PurchaseRequest] = None,
    purchase_engine: PurchaseEngine = Depends(get_purchase_engine),
):
    """
    Buys `quantity` units of `productId`.

    - Purchases are at least the configured cool-down apart; earlier attempts get a 429.
    - Each accepted purchase takes the configured processing time before stock is checked.
    - Stock is decremented atomically; the machine never sells more than it holds.
    """
    product_id = payload.product_id if payload is not None else None
    quantity = payload.quantity if payload is not None else None
    logger.info(f"Purchase requested: product='{product_id}', quantity={quantity}")
    outcome = await purchase_engine.purchase(product_id, quantity)
    return _purchase_response(outcome)


@app.get(
    "/products/purchases",
    response_model=List[PurchaseRecordResponse],
    summary="List purchase history with filtering and sorting",
)
def list_purchases(
    history: HistoryQueryEngine = Depends(get_history_engine),
    search_term: Optional[str] = Query(
        None,
        alias="searchTerm",
        max_length=255,
        description="Case-insensitive search on product name.",
    ),
    machine_id: Optional[str] = Query(
        None, alias="machineId", description="Only purchases made on this machine."
    ),
    hours: Optional[float] = Query(
        None, description="Only purchases from the last N hours. Ignored when not positive."
    ),
    sort_field: Optional[str] = Query(
        None, alias="sortField", description="One of amount, product, date (default)."
    ),
    sort_order: Optional[str] = Query(
        None, alias="sortOrder", description="asc or desc (default)."
    ),
):
    """
    Retrieves purchase records.

    - All filters are combined; omitted filters do not restrict the result.
    - Unknown sort values fall back to newest first.
    """
    purchase_filter = PurchaseFilter(
        search_term=search_term,
        machine_id=machine_id,
        hours=hours,
        sort_field=sort_field,
        sort_order=sort_order,
    )
    try:
        return history.query_purchases(purchase_filter)
    except SQLAlchemyError as e:
        logger.error(f"Error querying purchases: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not retrieve purchases.",
        )


@app.get(
    "/products/balance",
    response_model=BalanceResponse,
    summary="Current machine balance",
)
def get_balance():
    """
    Returns a pseudo-random balance between 1 and 10, rounded to cents.
    """
    return {"balance": round(random.uniform(1, 10), 2)}
