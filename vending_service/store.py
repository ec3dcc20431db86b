# vending_service/store.py

"""
Record store for products and purchase records, backed by a SQLAlchemy session.
Both the purchase flow and the history queries go through this class; neither
touches the session directly.
"""
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .models import Product, Purchase
from .schemas import ProductCreate


class RecordStore:
    def __init__(self, db: Session):
        self.db = db

    # --- Products ---

    def list_products(self) -> List[Product]:
        return list(self.db.scalars(select(Product).order_by(Product.id)))

    def find_product_by_id(self, product_id: str) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def current_stock(self, product_id: str) -> Optional[int]:
        """Re-reads the stock from the database, bypassing the identity map."""
        product = self.db.get(Product, product_id, populate_existing=True)
        return product.stock if product is not None else None

    def conditionally_decrement_stock(self, product_id: str, quantity: int) -> bool:
        """
        Atomically takes `quantity` units from the product's stock.
        The UPDATE only matches while enough stock remains, so two concurrent
        purchases can never push the stock below zero. Returns False when no
        row was updated. The change is part of the open transaction until
        `commit()`.
        """
        statement = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(statement)
        return result.rowcount == 1

    def add_product(self, product: ProductCreate) -> Product:
        db_product = Product(**product.model_dump())
        self.db.add(db_product)
        return db_product

    def count_products(self) -> int:
        return self.db.scalar(select(func.count()).select_from(Product))

    # --- Purchases ---

    def append_purchase_record(self, record: Purchase) -> Purchase:
        self.db.add(record)
        return record

    def query_purchases(self, criteria: Iterable = (), order_by: Iterable = ()) -> List[Purchase]:
        """
        Runs one SELECT over the purchase records with every criterion ANDed
        together and the given ORDER BY clauses applied in sequence.
        """
        statement = select(Purchase)
        for criterion in criteria:
            statement = statement.where(criterion)
        statement = statement.order_by(*order_by)
        return list(self.db.scalars(statement))

    # --- Transactions ---

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
