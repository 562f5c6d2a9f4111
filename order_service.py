"""
Order placement and lifecycle.

Checkout reserves stock line by line and compensates on failure: if any line
is rejected (or the insert itself fails) every reservation made for the same
request is released before the error propagates. Order numbers come from a
per-day counter document incremented atomically. All writes of an order go
through ``save_order`` so totals are recomputed server-side on every persist.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ReturnDocument
from pymongo.database import Database

import config
from database import now, to_object_id
from errors import (
    InsufficientStockError,
    InvalidStatusTransitionError,
    NotAuthorizedError,
    OrderAlreadyPaidError,
    OrderNotCancellableError,
    OrderNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from inventory import release_stock, reserve_stock
from schemas import Order as OrderSchema

logger = logging.getLogger(__name__)

ADDRESS_DEFAULTS = {
    "first_name": "Test",
    "last_name": "User",
    "phone": "123-456-7890",
}

# Cancellation has its own endpoint because it restores stock
STATUS_TRANSITIONS = {
    "pending": {"processing", "shipped", "delivered", "refunded"},
    "processing": {"shipped", "delivered", "refunded"},
    "shipped": {"delivered", "refunded"},
    "delivered": {"refunded"},
    "cancelled": set(),
    "refunded": set(),
}


def next_order_number(db: Database, when: Optional[datetime] = None) -> str:
    """Return ``SS{YY}{MM}{DD}{counter:04d}`` for the day of ``when``."""
    when = when or now()
    day = when.strftime("%y%m%d")
    counter = db["counter"].find_one_and_update(
        {"_id": f"order-{day}"},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return f"{config.ORDER_NUMBER_PREFIX}{day}{counter['seq']:04d}"


def compute_totals(order: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute items and grand total in place, ignoring caller-supplied totals."""
    items = order.get("items") or []
    if items:
        items_price = sum(float(i["price"]) * int(i["quantity"]) for i in items)
        order["items_price"] = round(items_price, 2)
        order["total_price"] = round(
            order["items_price"] + float(order.get("tax_price", 0)) + float(order.get("shipping_price", 0)), 2
        )
    return order


def save_order(db: Database, order: Dict[str, Any]) -> Dict[str, Any]:
    """Insert or replace ``order`` after recomputing its totals."""
    compute_totals(order)
    order["updated_at"] = now()
    if "_id" in order:
        db["order"].replace_one({"_id": order["_id"]}, order)
    else:
        order.setdefault("created_at", order["updated_at"])
        if not order.get("order_number"):
            order["order_number"] = next_order_number(db, order["created_at"])
        order["_id"] = db["order"].insert_one(order).inserted_id
    return order


def _release_all(db: Database, reserved: List[Tuple[Any, int]]):
    for product_id, quantity in reserved:
        release_stock(db, product_id, quantity)
    if reserved:
        logger.warning("Rolled back %d stock reservation(s)", len(reserved))


def create_order(
    db: Database,
    user_id: str,
    items: List[Dict[str, Any]],
    shipping_address: Dict[str, Any],
    payment_method: str,
    tax_price: float = 0.0,
    shipping_price: float = 0.0,
) -> Dict[str, Any]:
    if not items:
        raise ValidationError("No order items")
    if tax_price < 0 or shipping_price < 0:
        raise ValidationError("Tax and shipping prices cannot be negative")

    order_items = []
    reserved: List[Tuple[Any, int]] = []
    try:
        for item in items:
            ref = str(item["product"])
            quantity = int(item["quantity"])
            if quantity < 1:
                raise ValidationError("Quantity must be at least 1")
            product_id = to_object_id(ref)
            product = db["product"].find_one({"_id": product_id}) if product_id else None
            if not product:
                raise ProductNotFoundError(ref)
            if reserve_stock(db, product_id, quantity) is None:
                raise InsufficientStockError(product["name"])
            reserved.append((product_id, quantity))
            order_items.append({
                "product": ref,
                "name": product["name"],
                "price": float(product["price"]),
                "quantity": quantity,
                "image": product.get("image"),
                "sku": product.get("sku"),
            })

        address = dict(shipping_address)
        for key, default in ADDRESS_DEFAULTS.items():
            if not address.get(key):
                address[key] = default

        order = OrderSchema(
            user=user_id,
            items=order_items,
            shipping_address=address,
            payment_method=payment_method,
            tax_price=tax_price,
            shipping_price=shipping_price,
        ).model_dump()
        save_order(db, order)
    except Exception:
        _release_all(db, reserved)
        raise

    logger.info("Order %s created for user %s (total %.2f)", order["order_number"], user_id, order["total_price"])
    return order


def get_order(db: Database, order_id: str) -> Dict[str, Any]:
    oid = to_object_id(order_id)
    order = db["order"].find_one({"_id": oid}) if oid else None
    if not order:
        raise OrderNotFoundError(order_id)
    return order


def _owned_by(order: Dict[str, Any], current_user: Dict[str, Any]) -> bool:
    return current_user.get("role") == "admin" or order["user"] == current_user["id"]


def get_order_for(db: Database, order_id: str, current_user: Dict[str, Any]) -> Dict[str, Any]:
    """Load an order the caller owns (admins may load any order)."""
    order = get_order(db, order_id)
    if not _owned_by(order, current_user):
        raise NotAuthorizedError("Not authorized to access this order")
    return order


def list_orders(db: Database, query: Dict[str, Any], page: int = 1, limit: int = 10) -> Tuple[List[dict], int]:
    page = max(page, 1)
    cursor = db["order"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    return list(cursor), db["order"].count_documents(query)


def cancel_order(db: Database, order_id: str, current_user: Dict[str, Any]) -> Dict[str, Any]:
    order = get_order(db, order_id)
    if not _owned_by(order, current_user):
        raise NotAuthorizedError("Not authorized to cancel this order")
    if order["status"] != "pending":
        raise OrderNotCancellableError(order["status"])

    # Only the request that flips the status restores stock
    order = db["order"].find_one_and_update(
        {"_id": order["_id"], "status": "pending"},
        {"$set": {"status": "cancelled", "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if order is None:
        raise OrderNotCancellableError(get_order(db, order_id)["status"])

    for item in order["items"]:
        product_id = to_object_id(item["product"])
        if product_id is not None:
            release_stock(db, product_id, item["quantity"])

    logger.info("Order %s cancelled", order.get("order_number"))
    return order


def update_status(
    db: Database,
    order_id: str,
    status: str,
    tracking_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    order = get_order(db, order_id)
    current = order["status"]
    if status != current:
        if status not in STATUS_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransitionError(current, status)
        order["status"] = status
        if status == "delivered":
            order["is_delivered"] = True
            order["delivered_at"] = now()
    if tracking_number:
        order["tracking_number"] = tracking_number
    if notes:
        order["notes"] = notes
    save_order(db, order)
    if status != current:
        logger.info("Order %s status %s -> %s", order.get("order_number"), current, status)
    return order


def mark_delivered(db: Database, order_id: str) -> Dict[str, Any]:
    return update_status(db, order_id, "delivered")


def mark_paid(
    db: Database,
    order_id: str,
    payment_result: Optional[Dict[str, Any]] = None,
    payment_method: Optional[str] = None,
) -> Dict[str, Any]:
    order = get_order(db, order_id)
    if order.get("is_paid"):
        raise OrderAlreadyPaidError()
    order["is_paid"] = True
    order["paid_at"] = now()
    if order["status"] == "pending":
        order["status"] = "processing"
    if payment_method:
        order["payment_method"] = payment_method
    if payment_result:
        order["payment_result"] = payment_result
    save_order(db, order)
    logger.info("Order %s marked as paid", order.get("order_number"))
    return order


def order_stats(db: Database) -> Dict[str, Any]:
    totals = list(db["order"].aggregate([
        {
            "$group": {
                "_id": None,
                "total_orders": {"$sum": 1},
                "total_revenue": {"$sum": "$total_price"},
                "avg_order_value": {"$avg": "$total_price"},
            }
        }
    ]))
    breakdown = list(db["order"].aggregate([
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]))
    stats = {"total_orders": 0, "total_revenue": 0.0, "avg_order_value": 0.0}
    if totals:
        stats.update({k: v for k, v in totals[0].items() if k != "_id"})
    stats["status_breakdown"] = [{"status": b["_id"], "count": b["count"]} for b in breakdown]
    return stats
