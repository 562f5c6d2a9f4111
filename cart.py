"""
Server-side shopping cart.

The transitions (add, update, remove, clear) are pure functions over the list
of ``{product_id, quantity}`` items; the routes load the stored list, apply a
transition and write the result back. Product data is joined in on read, so a
client never supplies prices.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo.database import Database

from auth import get_current_user
from database import get_db, now, to_object_id
from products import present

router = APIRouter(prefix="/api/cart", tags=["cart"])

CartItems = List[Dict[str, Any]]


def add_item(items: CartItems, product_id: str, quantity: int = 1) -> CartItems:
    """Add ``quantity`` units, merging with an existing line for the product."""
    result = [dict(it) for it in items]
    for it in result:
        if it["product_id"] == product_id:
            it["quantity"] = int(it["quantity"]) + quantity
            return result
    result.append({"product_id": product_id, "quantity": quantity})
    return result


def update_quantity(items: CartItems, product_id: str, quantity: int) -> CartItems:
    """Set the quantity of a line; zero or less removes it."""
    if quantity <= 0:
        return remove_item(items, product_id)
    return [
        {**it, "quantity": quantity} if it["product_id"] == product_id else dict(it)
        for it in items
    ]


def remove_item(items: CartItems, product_id: str) -> CartItems:
    return [dict(it) for it in items if it["product_id"] != product_id]


def clear_items(items: CartItems) -> CartItems:
    return []


def item_count(items: CartItems) -> int:
    return sum(int(it["quantity"]) for it in items)


# Persistence

def load_items(db: Database, user_id: str) -> CartItems:
    cart = db["cart"].find_one({"user_id": user_id})
    return cart.get("items", []) if cart else []


def store_items(db: Database, user_id: str, items: CartItems):
    db["cart"].update_one(
        {"user_id": user_id},
        {"$set": {"items": items, "updated_at": now()}},
        upsert=True,
    )


def cart_view(db: Database, user_id: str) -> Dict[str, Any]:
    items = []
    subtotal = 0.0
    for it in load_items(db, user_id):
        obj_id = to_object_id(it["product_id"])
        prod = db["product"].find_one({"_id": obj_id}) if obj_id else None
        if prod:
            subtotal += float(prod["price"]) * int(it["quantity"])
        items.append({**it, "product": present(prod) if prod else None})
    return {
        "user_id": user_id,
        "items": items,
        "item_count": item_count(items),
        "subtotal": round(subtotal, 2),
    }


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateCartItem(BaseModel):
    product_id: str
    quantity: int


@router.get("")
def get_cart(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": cart_view(db, current_user["id"])}


@router.post("")
def add_to_cart(item: CartItem, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    # ensure product exists
    obj_id = to_object_id(item.product_id)
    if obj_id is None:
        raise HTTPException(status_code=400, detail="Invalid product id")
    prod = db["product"].find_one({"_id": obj_id, "is_active": True})
    if not prod:
        raise HTTPException(status_code=404, detail="Product not found")
    items = add_item(load_items(db, current_user["id"]), item.product_id, item.quantity)
    store_items(db, current_user["id"], items)
    return {"success": True, "data": cart_view(db, current_user["id"])}


@router.patch("")
def update_cart(item: UpdateCartItem, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    items = update_quantity(load_items(db, current_user["id"]), item.product_id, item.quantity)
    store_items(db, current_user["id"], items)
    return {"success": True, "data": cart_view(db, current_user["id"])}


@router.delete("/{product_id}")
def remove_from_cart(product_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    items = remove_item(load_items(db, current_user["id"]), product_id)
    store_items(db, current_user["id"], items)
    return {"success": True, "data": cart_view(db, current_user["id"])}


@router.delete("")
def clear_cart(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    store_items(db, current_user["id"], clear_items(load_items(db, current_user["id"])))
    return {"success": True, "data": cart_view(db, current_user["id"])}


def empty_cart(db: Database, user_id: Optional[str]):
    if user_id:
        db["cart"].update_one({"user_id": user_id}, {"$set": {"items": [], "updated_at": now()}})
