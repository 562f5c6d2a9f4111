import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo.database import Database

import config
from auth import require_admin
from database import get_db, now, serialize_doc, to_object_id
from inventory import adjust_stock
from schemas import Category, Product as ProductSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

SORTS = {
    "price_asc": [("price", 1)],
    "price_desc": [("price", -1)],
    "rating": [("rating", -1)],
    "newest": [("created_at", -1)],
    "oldest": [("created_at", 1)],
}


def present(product: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a product and add the derived discount/availability fields."""
    doc = serialize_doc(product)
    price = doc.get("price") or 0
    original = doc.get("original_price")
    doc["discount_percentage"] = round((original - price) / original * 100) if original and original > price else 0
    doc["is_available"] = doc.get("stock", 0) > 0 and doc.get("is_active", True)
    return doc


def search_clause(text: str) -> Dict[str, Any]:
    pattern = {"$regex": re.escape(text), "$options": "i"}
    return {"$or": [{"name": pattern}, {"description": pattern}, {"tags": pattern}]}


def _listing(products) -> Dict[str, Any]:
    data = [present(p) for p in products]
    return {"success": True, "count": len(data), "data": data}


def _product_or_404(db: Database, product_id: str) -> Dict[str, Any]:
    obj_id = to_object_id(product_id)
    if obj_id is None:
        raise HTTPException(status_code=400, detail="Invalid product id")
    product = db["product"].find_one({"_id": obj_id})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("")
def list_products(
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    on_sale: Optional[bool] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = config.PRODUCT_PAGE_LIMIT,
    db: Database = Depends(get_db),
):
    page = max(page, 1)
    limit = max(limit, 1)
    query: Dict[str, Any] = {"is_active": True}
    if category:
        query["category"] = category
    price_filter: Dict[str, Any] = {}
    if min_price is not None:
        price_filter["$gte"] = float(min_price)
    if max_price is not None:
        price_filter["$lte"] = float(max_price)
    if price_filter:
        query["price"] = price_filter
    if on_sale:
        query["is_on_sale"] = True
    if featured:
        query["is_featured"] = True
    if search:
        query.update(search_clause(search))

    collection = db["product"]
    total = collection.count_documents(query)
    start = (page - 1) * limit
    cursor = collection.find(query).sort(SORTS.get(sort, SORTS["newest"])).skip(start).limit(limit)
    items = [present(d) for d in cursor]

    pagination: Dict[str, Any] = {}
    if page * limit < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}
    return {"success": True, "count": len(items), "pagination": pagination, "total": total, "data": items}


@router.get("/featured")
def featured_products(db: Database = Depends(get_db)):
    return _listing(db["product"].find({"is_featured": True, "is_active": True}).sort("created_at", -1))


@router.get("/sale")
def sale_products(db: Database = Depends(get_db)):
    return _listing(db["product"].find({"is_on_sale": True, "is_active": True}).sort("created_at", -1))


@router.get("/categories")
def categories(db: Database = Depends(get_db)):
    return {"success": True, "data": sorted(db["product"].distinct("category"))}


@router.get("/category/{category}")
def products_by_category(category: str, db: Database = Depends(get_db)):
    return _listing(db["product"].find({"category": category, "is_active": True}).sort("created_at", -1))


@router.get("/search/{query}")
def search_products(query: str, db: Database = Depends(get_db)):
    filt = {"is_active": True, **search_clause(query)}
    return _listing(db["product"].find(filt).sort([("rating", -1), ("reviews", -1)]))


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": present(_product_or_404(db, product_id))}


@router.post("", status_code=201)
def create_product(data: ProductSchema, current_user: dict = Depends(require_admin), db: Database = Depends(get_db)):
    doc = data.model_dump()
    doc["created_by"] = current_user["id"]
    doc["created_at"] = now()
    doc["updated_at"] = doc["created_at"]
    res = db["product"].insert_one(doc)
    created = db["product"].find_one({"_id": res.inserted_id})
    logger.info("Product %s created by %s", res.inserted_id, current_user["id"])
    return {"success": True, "message": "Product created successfully", "data": present(created)}


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[Category] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    is_on_sale: Optional[bool] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    tags: Optional[List[str]] = None
    specifications: Optional[Dict[str, str]] = None


# Fields an update may clear with an explicit null
CLEARABLE_FIELDS = {"original_price", "subcategory", "brand", "sku"}


@router.put("/{product_id}")
def update_product(product_id: str, data: ProductUpdate, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    product = _product_or_404(db, product_id)
    update_dict = data.model_dump(exclude_unset=True)
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    nulls = sorted(k for k, v in update_dict.items() if v is None and k not in CLEARABLE_FIELDS)
    if nulls:
        raise HTTPException(status_code=400, detail=f"Fields cannot be null: {', '.join(nulls)}")
    update_dict["updated_at"] = now()
    db["product"].update_one({"_id": product["_id"]}, {"$set": update_dict})
    product = db["product"].find_one({"_id": product["_id"]})
    return {"success": True, "message": "Product updated successfully", "data": present(product)}


@router.delete("/{product_id}")
def delete_product(product_id: str, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    product = _product_or_404(db, product_id)
    # Soft delete: past orders keep pointing at it
    db["product"].update_one({"_id": product["_id"]}, {"$set": {"is_active": False, "updated_at": now()}})
    logger.info("Product %s deactivated", product["_id"])
    return {"success": True, "message": "Product deleted successfully"}


class StockUpdate(BaseModel):
    quantity: int = Field(..., description="Signed change applied to the current stock")


@router.put("/{product_id}/stock")
def update_stock(product_id: str, data: StockUpdate, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    product = _product_or_404(db, product_id)
    updated = adjust_stock(db, product["_id"], data.quantity)
    logger.info("Stock of product %s adjusted by %d to %d", product["_id"], data.quantity, updated["stock"])
    return {"success": True, "message": "Stock updated successfully", "data": present(updated)}
