"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each Pydantic model represents a collection in your database.
Model name lowercased is the collection name.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Category = Literal["Electronics", "Fashion", "Home", "Lifestyle", "Sports", "Books", "Toys", "Other"]

PaymentMethod = Literal["credit_card", "paypal", "stripe", "cash_on_delivery"]

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled", "refunded"]


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="BCrypt hashed password")
    role: Literal["user", "admin"] = Field("user", description="Role: user | admin")
    phone: Optional[str] = None
    is_email_verified: bool = False


class Product(BaseModel):
    name: str = Field(..., max_length=100)
    description: str = Field(..., max_length=1000)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0, description="Price before discount")
    image: str
    images: List[str] = Field(default_factory=list)
    rating: float = Field(default=0, ge=0, le=5)
    reviews: int = Field(default=0, ge=0)
    category: Category
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    stock: int = Field(0, ge=0, description="Units in stock")
    is_on_sale: bool = False
    is_active: bool = True
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)
    specifications: Dict[str, str] = Field(default_factory=dict)
    created_by: Optional[str] = None


class OrderItem(BaseModel):
    product: str = Field(..., description="Product id at order time")
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: Optional[str] = None
    sku: Optional[str] = None


class ShippingAddress(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: str
    city: str
    state: str
    zip_code: str
    country: str = "US"
    phone: Optional[str] = None


class PaymentResult(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class Order(BaseModel):
    order_number: Optional[str] = None
    user: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_result: Optional[PaymentResult] = None
    items_price: float = 0.0
    tax_price: float = Field(0.0, ge=0)
    shipping_price: float = Field(0.0, ge=0)
    total_price: float = 0.0
    status: OrderStatus = "pending"
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
