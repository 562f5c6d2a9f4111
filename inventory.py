"""Stock counter updates.

Every change to ``product.stock`` is a single conditional document update, so
two requests racing for the last units cannot both succeed and the counter
never goes negative.
"""

import logging
from typing import Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from database import now

logger = logging.getLogger(__name__)


def reserve_stock(db: Database, product_id: ObjectId, quantity: int) -> Optional[dict]:
    """Take ``quantity`` units from an active product.

    Returns the updated product, or None when the product is inactive or has
    fewer than ``quantity`` units left.
    """
    return db["product"].find_one_and_update(
        {"_id": product_id, "is_active": True, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )


def release_stock(db: Database, product_id: ObjectId, quantity: int) -> bool:
    """Put ``quantity`` units back. Missing products are skipped."""
    res = db["product"].update_one(
        {"_id": product_id},
        {"$inc": {"stock": quantity}, "$set": {"updated_at": now()}},
    )
    if res.matched_count == 0:
        logger.warning("Product %s no longer exists; %d units not restored", product_id, quantity)
        return False
    return True


def adjust_stock(db: Database, product_id: ObjectId, delta: int) -> Optional[dict]:
    """Apply a signed stock delta, clamping the result at zero.

    Returns the updated product or None if it doesn't exist.
    """
    if delta >= 0:
        return db["product"].find_one_and_update(
            {"_id": product_id},
            {"$inc": {"stock": delta}, "$set": {"updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
    updated = db["product"].find_one_and_update(
        {"_id": product_id, "stock": {"$gte": -delta}},
        {"$inc": {"stock": delta}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is not None:
        return updated
    # Not enough units for the full decrement: drain to zero
    drained = db["product"].find_one_and_update(
        {"_id": product_id, "stock": {"$lt": -delta}},
        {"$set": {"stock": 0, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    return drained or db["product"].find_one({"_id": product_id})
