"""Load sample catalog data and an admin account into an empty database.

Run with ``python seed.py``. Existing collections are left untouched.
"""

import logging
import os

from pymongo.database import Database

from auth import hash_password
from database import create_document, get_db
from schemas import Product, User

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {
        "name": "Premium Wireless Headphones",
        "description": "High-quality wireless headphones with noise cancellation and premium sound quality.",
        "price": 199.99,
        "original_price": 249.99,
        "image": "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=500&h=500&fit=crop",
        "rating": 4.8,
        "reviews": 324,
        "category": "Electronics",
        "subcategory": "Audio",
        "brand": "AudioTech",
        "sku": "ATH-WH001",
        "stock": 50,
        "is_on_sale": True,
        "is_featured": True,
        "tags": ["wireless", "noise-cancelling", "bluetooth"],
        "specifications": {"Connectivity": "Bluetooth 5.0", "Battery Life": "30 hours"},
    },
    {
        "name": "Smart Fitness Watch",
        "description": "Fitness tracking watch with heart rate monitoring, GPS and smartphone connectivity.",
        "price": 299.99,
        "original_price": 399.99,
        "image": "https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=500&h=500&fit=crop",
        "rating": 4.6,
        "reviews": 189,
        "category": "Electronics",
        "subcategory": "Wearables",
        "brand": "FitPro",
        "sku": "FP-SW002",
        "stock": 30,
        "is_on_sale": True,
        "tags": ["fitness", "gps", "smartwatch"],
    },
    {
        "name": "Organic Cotton T-Shirt",
        "description": "Soft, breathable t-shirt made from organic cotton.",
        "price": 29.99,
        "image": "https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=500&h=500&fit=crop",
        "rating": 4.4,
        "reviews": 96,
        "category": "Fashion",
        "brand": "EcoWear",
        "sku": "EW-TS003",
        "stock": 120,
        "is_featured": True,
        "tags": ["cotton", "organic", "casual"],
    },
    {
        "name": "Ceramic Pour-Over Coffee Set",
        "description": "Hand-glazed ceramic dripper with matching carafe.",
        "price": 54.5,
        "image": "https://images.unsplash.com/photo-1495474472287-4d71bcdd2085?w=500&h=500&fit=crop",
        "rating": 4.7,
        "reviews": 58,
        "category": "Home",
        "brand": "Kiln & Co",
        "sku": "KC-PO004",
        "stock": 25,
        "tags": ["coffee", "ceramic", "kitchen"],
    },
]


def seed(db: Database, admin_email: str = "admin@example.com", admin_password: str = "admin123") -> dict:
    created = {"users": 0, "products": 0}
    if db["user"].count_documents({"role": "admin"}) == 0:
        admin = User(
            name="Store Admin",
            email=admin_email,
            password_hash=hash_password(admin_password),
            role="admin",
            is_email_verified=True,
        )
        admin_id = create_document(db, "user", admin)
        created["users"] += 1
    else:
        admin_id = str(db["user"].find_one({"role": "admin"})["_id"])

    if db["product"].count_documents({}) == 0:
        for p in SAMPLE_PRODUCTS:
            create_document(db, "product", Product(**p, created_by=admin_id))
            created["products"] += 1
    logger.info("Seeded %d user(s) and %d product(s)", created["users"], created["products"])
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed(
        get_db(),
        admin_email=os.getenv("ADMIN_EMAIL", "admin@example.com"),
        admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
    )
