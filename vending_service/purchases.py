# vending_service/purchases.py

"""
Purchase flow for the vending machine.
A purchase is validated, checked against the machine's cool-down, delayed to
model dispensing, checked against stock, and finally committed together with
its audit record. Every path ends in a `PurchaseOutcome`; nothing is raised
to the caller.
"""
import asyncio
import logging
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from .models import Purchase
from .rate_limiter import Clock, CooldownRateLimiter, utc_now
from .store import RecordStore

logger = logging.getLogger(__name__)

ProcessingDelay = Callable[[], Awaitable[None]]


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    PERSISTENCE_FAILURE = "persistence_failure"


# HTTP status each outcome is reported with.
STATUS_CODES = {
    OutcomeKind.SUCCESS: 200,
    OutcomeKind.VALIDATION_ERROR: 400,
    OutcomeKind.INSUFFICIENT_STOCK: 400,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.RATE_LIMITED: 429,
    OutcomeKind.PERSISTENCE_FAILURE: 500,
}


class PurchaseOutcome(BaseModel):
    kind: OutcomeKind
    message: str
    remaining: Optional[int] = None
    quantity_purchased: Optional[int] = None
    total_cost: Optional[Decimal] = None
    retry_after: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


def sleep_delay(seconds: float) -> ProcessingDelay:
    """
    Returns a delay that suspends the current request for `seconds` without
    blocking the event loop. Cancelling the request cancels the wait.
    """

    async def wait() -> None:
        await asyncio.sleep(seconds)

    return wait


async def no_delay() -> None:
    return None


class PurchaseEngine:
    """
    Runs one purchase attempt from request to terminal outcome.

    The engine is cheap to build and is created per request around that
    request's store. The rate limiter is the only state shared between
    requests and is passed in by the owner of its lifetime.
    """

    def __init__(
        self,
        store: RecordStore,
        rate_limiter: CooldownRateLimiter,
        *,
        lock_key: str = "GlobalMachineLock",
        machine_id: str = "machine-001",
        delay: ProcessingDelay = no_delay,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.lock_key = lock_key
        self.machine_id = machine_id
        self.delay = delay
        self.clock = clock

    async def purchase(self, product_id, quantity) -> PurchaseOutcome:
        invalid = self._validate(product_id, quantity)
        if invalid is not None:
            logger.warning(f"Rejected purchase request: {invalid.message}")
            return invalid

        retry_after = self.rate_limiter.retry_after(self.lock_key, self.clock())
        if retry_after > 0:
            logger.warning(
                f"Purchase of {quantity} x '{product_id}' throttled; "
                f"machine busy for another {retry_after:.2f}s."
            )
            return PurchaseOutcome(
                kind=OutcomeKind.RATE_LIMITED,
                message=f"Please wait {self._cooldown_label()} seconds between purchases.",
                retry_after=retry_after,
            )

        await self.delay()

        # Store calls block; keep them off the event loop.
        outcome = await run_in_threadpool(self._dispense, product_id, quantity)
        if outcome.success:
            self.rate_limiter.record_success(self.lock_key, self.clock())
        return outcome

    def _dispense(self, product_id: str, quantity: int) -> PurchaseOutcome:
        """Stock check, decrement, audit record and commit as one unit."""
        try:
            product = self.store.find_product_by_id(product_id)
            if product is None:
                logger.warning(f"Purchase failed: product '{product_id}' not found.")
                return PurchaseOutcome(kind=OutcomeKind.NOT_FOUND, message="Product not found.")

            if product.stock < quantity:
                return self._insufficient(product_id, quantity, product.stock)

            if not self.store.conditionally_decrement_stock(product_id, quantity):
                # Another purchase took the stock between our read and the update.
                remaining = self.store.current_stock(product_id) or 0
                return self._insufficient(product_id, quantity, remaining)

            total_cost = Decimal(str(product.price)) * quantity
            record = Purchase(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                amount=total_cost,
                purchase_time=self.clock(),
                machine_id=self.machine_id,
            )
            self.store.append_purchase_record(record)
            remaining = self.store.current_stock(product_id)
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error(
                f"Error processing purchase of {quantity} x '{product_id}': {e}",
                exc_info=True,
            )
            return PurchaseOutcome(
                kind=OutcomeKind.PERSISTENCE_FAILURE,
                message="An error occurred while processing the purchase.",
            )

        logger.info(
            f"Purchased {quantity} x '{product_id}' for {total_cost} "
            f"on {self.machine_id}; {remaining} remaining."
        )
        return PurchaseOutcome(
            kind=OutcomeKind.SUCCESS,
            message="Purchase successful!",
            remaining=remaining,
            quantity_purchased=quantity,
            total_cost=total_cost,
        )

    @staticmethod
    def _validate(product_id, quantity) -> Optional[PurchaseOutcome]:
        if not isinstance(product_id, str) or not product_id.strip():
            return PurchaseOutcome(
                kind=OutcomeKind.VALIDATION_ERROR, message="Invalid purchase request."
            )
        # bool is an int subclass; True is not a quantity.
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return PurchaseOutcome(
                kind=OutcomeKind.VALIDATION_ERROR,
                message="Quantity must be greater than zero.",
            )
        return None

    @staticmethod
    def _insufficient(product_id: str, quantity: int, remaining: int) -> PurchaseOutcome:
        logger.warning(
            f"Purchase of {quantity} x '{product_id}' rejected: only {remaining} in stock."
        )
        return PurchaseOutcome(
            kind=OutcomeKind.INSUFFICIENT_STOCK,
            message=f"Out of stock. Only {remaining} remaining.",
            remaining=remaining,
        )

    def _cooldown_label(self) -> str:
        seconds = self.rate_limiter.cooldown.total_seconds()
        return f"{seconds:g}"
