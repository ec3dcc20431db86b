# vending_service/models.py

"""
SQLAlchemy database models for the Vending Service.
These classes define the structure of tables in the database.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String

from .db import Base


class Product(Base):
    """
    SQLAlchemy model for the 'products' table.
    Represents an item loaded in the machine and how many units remain.
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    # Primary Key: stable identifier assigned when the product is seeded.
    id = Column(String(64), primary_key=True, index=True)

    # Display name shown on the machine.
    name = Column(String(255), nullable=False, index=True)

    # Unit price: numeric with 10 total digits and 2 decimal places.
    price = Column(Numeric(10, 2), nullable=False)

    # Units currently available. Only the purchase flow decrements it.
    stock = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"


class Purchase(Base):
    """
    SQLAlchemy model for the 'purchases' table.
    Append-only audit trail: one row per committed purchase, never updated.
    """

    __tablename__ = "purchases"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchases_quantity_positive"),
    )

    # Autoincrement id doubles as the natural insertion order.
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    product_id = Column(String(64), nullable=False, index=True)

    # Snapshot of the product name at purchase time.
    product_name = Column(String(255), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)

    # Unit price times quantity, frozen at purchase time.
    amount = Column(Numeric(12, 2), nullable=False)

    purchase_time = Column(DateTime(timezone=True), nullable=False, index=True)

    machine_id = Column(String(64), nullable=False, index=True)

    def __repr__(self):
        return (
            f"<Purchase(id={self.id}, product='{self.product_name}', "
            f"qty={self.quantity}, amount={self.amount})>"
        )
