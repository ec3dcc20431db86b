# vending_service/history.py

"""
Purchase history queries.
Turns a `PurchaseFilter` into WHERE and ORDER BY clauses and runs them as a
single query against the record store.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from .models import Purchase
from .rate_limiter import Clock, utc_now
from .schemas import PurchaseFilter, SortField, SortOrder
from .store import RecordStore

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    SortField.AMOUNT: Purchase.amount,
    SortField.PRODUCT: Purchase.product_name,
    SortField.DATE: Purchase.purchase_time,
}


class HistoryQueryEngine:
    def __init__(self, store: RecordStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    def criteria(self, purchase_filter: PurchaseFilter) -> list:
        clauses = []
        if purchase_filter.search_term:
            clauses.append(
                Purchase.product_name.icontains(purchase_filter.search_term, autoescape=True)
            )
        if purchase_filter.machine_id:
            clauses.append(Purchase.machine_id == purchase_filter.machine_id)
        if purchase_filter.hours:
            try:
                cutoff = self.clock() - timedelta(hours=purchase_filter.hours)
            except OverflowError:
                # Window reaches past datetime.min: every record qualifies.
                cutoff = None
            if cutoff is not None:
                clauses.append(Purchase.purchase_time >= cutoff)
        return clauses

    @staticmethod
    def ordering(purchase_filter: PurchaseFilter) -> list:
        column = SORT_COLUMNS[purchase_filter.sort_field]
        key = column.asc() if purchase_filter.sort_order is SortOrder.ASC else column.desc()
        # Equal keys keep insertion order.
        return [key, Purchase.id.asc()]

    def query_purchases(self, purchase_filter: Optional[PurchaseFilter] = None) -> List[Purchase]:
        """
        Returns the purchase records matching every option of `purchase_filter`,
        in the requested order. Without a filter, every record is returned
        newest first.
        """
        purchase_filter = purchase_filter or PurchaseFilter()
        logger.info(
            f"Querying purchases: search='{purchase_filter.search_term}', "
            f"machine='{purchase_filter.machine_id}', hours={purchase_filter.hours}, "
            f"sort={purchase_filter.sort_field.value} {purchase_filter.sort_order.value}"
        )
        records = self.store.query_purchases(
            self.criteria(purchase_filter), self.ordering(purchase_filter)
        )
        logger.info(f"Retrieved {len(records)} purchase records.")
        return records
