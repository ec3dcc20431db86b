# vending_service/dependencies.py

"""
FastAPI dependencies that assemble the purchase and history engines.
Each piece can be replaced through `app.dependency_overrides`.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .db import get_db
from .history import HistoryQueryEngine
from .purchases import ProcessingDelay, PurchaseEngine, sleep_delay
from .rate_limiter import Clock, CooldownRateLimiter, utc_now
from .store import RecordStore


def get_clock() -> Clock:
    return utc_now


def get_rate_limiter(request: Request) -> CooldownRateLimiter:
    """The limiter lives on the application and is shared by every request."""
    return request.app.state.rate_limiter


def get_processing_delay(settings: Settings = Depends(get_settings)) -> ProcessingDelay:
    return sleep_delay(settings.processing_delay_seconds)


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_purchase_engine(
    store: RecordStore = Depends(get_store),
    rate_limiter: CooldownRateLimiter = Depends(get_rate_limiter),
    delay: ProcessingDelay = Depends(get_processing_delay),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> PurchaseEngine:
    return PurchaseEngine(
        store,
        rate_limiter,
        lock_key=settings.lock_key,
        machine_id=settings.machine_id,
        delay=delay,
        clock=clock,
    )


def get_history_engine(
    store: RecordStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> HistoryQueryEngine:
    return HistoryQueryEngine(store, clock=clock)
