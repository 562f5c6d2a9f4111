from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo.database import Database

import config
import order_service
from auth import get_current_user, require_admin
from cart import empty_cart
from database import get_db, serialize_doc
from schemas import OrderStatus, PaymentMethod, PaymentResult, ShippingAddress

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderItemInput(BaseModel):
    product: str
    quantity: int = Field(..., ge=1)


class CreateOrderInput(BaseModel):
    items: List[OrderItemInput] = Field(default_factory=list)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    tax_price: float = Field(0.0, ge=0)
    shipping_price: float = Field(0.0, ge=0)


class StatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


def _page(orders, total):
    data = [serialize_doc(o) for o in orders]
    return {"success": True, "count": len(data), "total": total, "data": data}


@router.post("", status_code=201)
def create_order(payload: CreateOrderInput, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    order = order_service.create_order(
        db,
        user_id=current_user["id"],
        items=[i.model_dump() for i in payload.items],
        shipping_address=payload.shipping_address.model_dump(),
        payment_method=payload.payment_method,
        tax_price=payload.tax_price,
        shipping_price=payload.shipping_price,
    )
    empty_cart(db, current_user["id"])
    return {"success": True, "message": "Order created successfully", "data": serialize_doc(order)}


@router.get("/myorders")
def my_orders(
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_LIMIT,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    orders, total = order_service.list_orders(db, {"user": current_user["id"]}, page, max(limit, 1))
    return _page(orders, total)


@router.get("/stats")
def stats(_: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, "data": order_service.order_stats(db)}


@router.get("/status/{status}")
def orders_by_status(
    status: OrderStatus,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_LIMIT,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    orders, total = order_service.list_orders(db, {"status": status}, page, max(limit, 1))
    return _page(orders, total)


@router.get("")
def all_orders(
    status: Optional[OrderStatus] = None,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_LIMIT,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    query = {"status": status} if status else {}
    orders, total = order_service.list_orders(db, query, page, max(limit, 1))
    return _page(orders, total)


@router.get("/{order_id}")
def get_order(order_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    order = order_service.get_order_for(db, order_id, current_user)
    return {"success": True, "data": serialize_doc(order)}


@router.put("/{order_id}/pay")
def pay_order(
    order_id: str,
    payment_result: Optional[PaymentResult] = None,
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    result = payment_result.model_dump(exclude_none=True) if payment_result else None
    order = order_service.mark_paid(db, order_id, payment_result=result)
    return {"success": True, "message": "Order marked as paid", "data": serialize_doc(order)}


@router.put("/{order_id}/deliver")
def deliver_order(order_id: str, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    order = order_service.mark_delivered(db, order_id)
    return {"success": True, "message": "Order marked as delivered", "data": serialize_doc(order)}


@router.put("/{order_id}/status")
def update_order_status(order_id: str, data: StatusUpdate, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    order = order_service.update_status(db, order_id, data.status, data.tracking_number, data.notes)
    return {"success": True, "message": "Order status updated successfully", "data": serialize_doc(order)}


@router.put("/{order_id}/cancel")
def cancel_order(order_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    order = order_service.cancel_order(db, order_id, current_user)
    return {"success": True, "message": "Order cancelled successfully", "data": serialize_doc(order)}
