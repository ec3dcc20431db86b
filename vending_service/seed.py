# vending_service/seed.py

"""
Default catalogue loaded into an empty machine at startup.
"""
import logging
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from .schemas import ProductCreate
from .store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_PRODUCTS = [
    ProductCreate(id="coke", name="Coke", price=Decimal("1.50"), stock=10),
    ProductCreate(id="pepsi", name="Pepsi", price=Decimal("1.45"), stock=8),
    ProductCreate(id="water", name="Mineral Water", price=Decimal("1.00"), stock=15),
    ProductCreate(id="chips", name="Potato Chips", price=Decimal("2.25"), stock=6),
    ProductCreate(id="chocolate", name="Chocolate Bar", price=Decimal("1.75"), stock=12),
]


def seed_products(db: Session, products: Iterable[ProductCreate] = DEFAULT_PRODUCTS) -> int:
    """
    Inserts `products` when the products table is empty and returns how many
    were added. A machine that already has a catalogue is left untouched.
    """
    store = RecordStore(db)
    existing = store.count_products()
    if existing:
        logger.info(f"Skipping product seed: {existing} products already present.")
        return 0
    added = 0
    for product in products:
        store.add_product(product)
        added += 1
    store.commit()
    logger.info(f"Seeded {added} products.")
    return added
