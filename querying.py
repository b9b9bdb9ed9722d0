"""
Two-stage query pipeline.

Stage one pushes at most one equality predicate (plus an optional limit) to
the document store so no composite index is ever needed. Stage two applies the
remaining predicates, the sort and the offset as plain functions over the
fetched list.
"""
import locale
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Optional, Tuple

from database import DocumentStore

Document = Dict[str, Any]
Predicate = Callable[[Document], bool]


@dataclass
class QueryPlan:
    primary: Optional[Tuple[str, Any]] = None
    residual: List[Predicate] = field(default_factory=list)
    sort_by: Optional[str] = None
    descending: bool = False
    default_sort: Optional[str] = None
    default_descending: bool = False
    limit: Optional[int] = None
    offset: int = 0
    # store-level order used only when there is no primary filter
    store_order: str = "createdAt"


def fetch(store: DocumentStore, collection: str, plan: QueryPlan) -> List[Document]:
    if plan.primary is not None:
        name, value = plan.primary
        return store.query(collection, [(name, "==", value)], limit=plan.limit)
    return store.query(collection, order_by=plan.store_order, descending=True, limit=plan.limit)


def apply_filters(items: List[Document], predicates: List[Predicate]) -> List[Document]:
    for predicate in predicates:
        items = [item for item in items if predicate(item)]
    return items


def _compare(a: Any, b: Any) -> int:
    if a is None or b is None:
        # missing values sort last regardless of direction
        return (a is None) - (b is None)
    if isinstance(a, str) or isinstance(b, str):
        a, b = str(a), str(b)
        return locale.strcoll(a.casefold(), b.casefold()) or locale.strcoll(a, b)
    try:
        return (a > b) - (a < b)
    except TypeError:
        # unordered values such as per-size stock maps
        return 0


def sort_items(items: List[Document], key: str, descending: bool = False) -> List[Document]:
    def cmp(x: Document, y: Document) -> int:
        a, b = x.get(key), y.get(key)
        if a is None or b is None:
            return _compare(a, b)
        result = _compare(a, b)
        return -result if descending else result

    return sorted(items, key=cmp_to_key(cmp))


def paginate(items: List[Document], offset: int) -> List[Document]:
    return items[offset:] if offset else items


def run_query(store: DocumentStore, collection: str, plan: QueryPlan) -> List[Document]:
    items = fetch(store, collection, plan)
    items = apply_filters(items, plan.residual)
    if plan.sort_by:
        items = sort_items(items, plan.sort_by, plan.descending)
    elif plan.default_sort:
        items = sort_items(items, plan.default_sort, plan.default_descending)
    return paginate(items, plan.offset)


def equals(name: str, value: Any) -> Predicate:
    return lambda doc: doc.get(name) == value


def at_least(name: str, bound: float) -> Predicate:
    return lambda doc: doc.get(name) is not None and doc[name] >= bound


def at_most(name: str, bound: float) -> Predicate:
    return lambda doc: doc.get(name) is not None and doc[name] <= bound


TEXT_FIELDS = ("name", "description", "subcategory", "fabric")
LIST_FIELDS = ("features", "colors")


def matches_text(term: str) -> Predicate:
    needle = term.lower()

    def predicate(doc: Document) -> bool:
        for name in TEXT_FIELDS:
            value = doc.get(name)
            if isinstance(value, str) and needle in value.lower():
                return True
        for name in LIST_FIELDS:
            if any(isinstance(v, str) and needle in v.lower() for v in doc.get(name) or []):
                return True
        return False

    return predicate


@dataclass
class ProductFilters:
    category: Optional[str] = None
    subcategory: Optional[str] = None
    status: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    q: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


def product_plan(filters: ProductFilters) -> QueryPlan:
    residual: List[Predicate] = []
    if filters.subcategory:
        residual.append(equals("subcategory", filters.subcategory))
    if filters.status:
        residual.append(equals("status", filters.status))
    if filters.min_price is not None:
        residual.append(at_least("price", filters.min_price))
    if filters.max_price is not None:
        residual.append(at_most("price", filters.max_price))
    if filters.q:
        residual.append(matches_text(filters.q))

    return QueryPlan(
        primary=("category", filters.category) if filters.category else None,
        residual=residual,
        sort_by=filters.sort_by or None,
        descending=filters.sort_order == "desc",
        default_sort="id",
        limit=filters.limit,
        offset=filters.offset or 0,
    )


@dataclass
class OrderFilters:
    order_status: Optional[str] = None
    payment_status: Optional[str] = None
    user_id: Optional[str] = None
    limit: Optional[int] = None


def order_plan(filters: OrderFilters) -> QueryPlan:
    clauses = [
        (name, value)
        for name, value in (
            ("orderStatus", filters.order_status),
            ("paymentStatus", filters.payment_status),
            ("userId", filters.user_id),
        )
        if value
    ]
    primary = clauses[0] if clauses else None
    return QueryPlan(
        primary=primary,
        residual=[equals(name, value) for name, value in clauses[1:]],
        default_sort="createdAt",
        default_descending=True,
        limit=filters.limit,
    )
