import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from errors import Forbidden, NotFound, best_effort
from identity import TokenClaims
from querying import OrderFilters
from repositories import Services
from schemas import OrderCreate, OrderStatus, OrderStatusUpdate, PaymentStatus, PaymentStatusUpdate
from security import authenticate_token, get_services, is_admin, optional_auth, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


@router.post("", status_code=201)
def create_order(
    body: OrderCreate,
    services: Services = Depends(get_services),
    claims: Optional[TokenClaims] = Depends(optional_auth),
):
    data = body.model_dump()
    data["userId"] = claims.uid if claims else None
    order = services.orders.create(data)

    if claims:
        summary = {
            "orderId": order["orderId"],
            "totalAmount": order["totalAmount"],
            "orderStatus": order["orderStatus"],
            "itemCount": len(order["items"]),
        }
        best_effort(services.users.add_order, claims.uid, summary, description="Recording order in user history")

    return {"success": True, "data": order, "message": "Order created successfully"}


@router.get("")
def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="orderStatus"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    limit: Optional[int] = Query(None, ge=1),
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    orders = services.orders.find_all(
        OrderFilters(order_status=order_status, payment_status=payment_status, limit=limit)
    )
    return {"success": True, "count": len(orders), "data": orders}


@router.get("/stats/overview")
def order_stats(services: Services = Depends(get_services), _admin=Depends(require_admin)):
    return {"success": True, "data": services.orders.stats()}


@router.get("/user/{user_id}")
def user_orders(
    user_id: str,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    if claims.uid != user_id and not is_admin(claims, services):
        raise Forbidden("Not authorized to view these orders")
    orders = services.orders.find_by_user_id(user_id)
    return {"success": True, "count": len(orders), "data": orders}


@router.get("/{order_id}")
def get_order(
    order_id: str,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    order = services.orders.find_by_id(order_id)
    if not order:
        raise NotFound("Order not found")
    if claims.uid != order.get("userId") and not is_admin(claims, services):
        raise Forbidden("Not authorized to view this order")
    return {"success": True, "data": order}


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    order = services.orders.update_order_status(order_id, body.status)
    return {"success": True, "data": order, "message": f"Order status updated to {body.status}"}


@router.patch("/{order_id}/payment")
def update_payment_status(
    order_id: str,
    body: PaymentStatusUpdate,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    order = services.orders.update_payment_status(order_id, body.status)
    return {"success": True, "data": order, "message": f"Payment status updated to {body.status}"}
