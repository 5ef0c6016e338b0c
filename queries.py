"""
Server-side filtering, sorting and totals for the Expense and Product lists.
Totals always cover the whole collection and ignore any filter applied to the list.
"""

from database import RecordStore
from filters import ExpenseFilter, ProductFilter


def list_expenses(store: RecordStore, flt: ExpenseFilter):
    return store.list_all(flt.to_query())


def list_products(store: RecordStore, flt: ProductFilter):
    return store.list_all(flt.to_query(), sort=flt.sort)


def expense_total(store: RecordStore) -> float:
    return store.total("$amount")


def stock_value(store: RecordStore) -> float:
    return store.total({"$multiply": ["$price", "$quantity"]})
