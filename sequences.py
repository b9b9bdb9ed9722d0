"""
Human-facing sequential identifiers.

Both sequences read the current maximum and add one; there is no counter
document. Two concurrent creations can read the same maximum and receive the
same identifier.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Callable

from database import DocumentStore
from errors import UpstreamError

logger = logging.getLogger(__name__)

PRODUCTS = "products"
ORDERS = "orders"

# ids 1-22 belong to the static storefront catalogue
MIN_DYNAMIC_PRODUCT_ID = 1000
ORDER_SEQUENCE_WIDTH = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _millis() -> int:
    return int(time.time() * 1000)


class SequenceAllocator:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = _now, millis: Callable[[], int] = _millis):
        self.store = store
        self.clock = clock
        self.millis = millis

    def next_product_id(self) -> int:
        try:
            latest = self.store.query(
                PRODUCTS,
                [("id", ">=", MIN_DYNAMIC_PRODUCT_ID)],
                order_by="id",
                descending=True,
                limit=1,
            )
        except UpstreamError as exc:
            logger.warning("Error generating product id, using timestamp: %s", exc)
            return self.millis()

        if not latest:
            return MIN_DYNAMIC_PRODUCT_ID
        return int(latest[0].get("id") or MIN_DYNAMIC_PRODUCT_ID - 1) + 1

    def order_prefix(self) -> str:
        return f"ORD-{self.clock().astimezone(timezone.utc):%Y%m%d}"

    def next_order_id(self) -> str:
        prefix = self.order_prefix()
        try:
            latest = self.store.query(
                ORDERS,
                [("orderId", ">=", f"{prefix}-00000"), ("orderId", "<=", f"{prefix}-99999")],
                order_by="orderId",
                descending=True,
                limit=1,
            )
        except UpstreamError as exc:
            logger.error("Error generating order id: %s", exc)
            return f"ORD-{self.millis()}"

        number = 1
        if latest:
            number = int(latest[0]["orderId"].split("-")[2]) + 1
        order_id = f"{prefix}-{number:0{ORDER_SEQUENCE_WIDTH}d}"
        logger.info("Generated order id: %s", order_id)
        return order_id
