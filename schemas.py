"""
Database Schemas for the E-commerce API

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name:
- User -> "user" collection
- Product -> "product" collection
- Order -> "order" collection

References to other documents are stored as stringified ObjectIds.
Request bodies accept camelCase keys as well as snake_case.
"""
import re
import unicodedata
from datetime import datetime
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

ROLES = ("admin", "customer")
ORDER_STATUSES = ("pending", "processed", "shipped", "delivered", "canceled", "payment failed")
PAYMENT_STATUSES = ("pending", "success", "failed")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShippingAddress(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None


class User(CamelModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="bcrypt hash of the password")
    role: Literal["admin", "customer"] = "customer"
    phone: Optional[str] = None
    address: List[ShippingAddress] = []


class Category(CamelModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: str = Field(..., min_length=1)
    slug: Optional[str] = Field(None, description="URL-friendly version of the name")
    description: Optional[str] = None
    parent_category: Optional[str] = Field(None, description="Parent category id for subcategories")


class Product(CamelModel):
    """
    Products collection schema
    Collection name: "product"
    """
    title: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., ge=0)
    old_price: Optional[float] = Field(None, ge=0, description="Price before discount")
    rating: float = Field(0, ge=0, le=5, description="Average review rating")
    rating_count: int = Field(0, ge=0, description="Number of reviews behind rating")
    category: str = Field(..., description="Category id")
    sales: int = Field(0, description="Units sold")
    images: List[str] = Field(..., min_length=1)
    colors: List[str] = []
    offer_expiry: Optional[datetime] = None
    stock_quantity: int = Field(..., ge=0)
    in_stock: bool = True
    additional_info: List[str] = []


class OrderItem(CamelModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at order time")


class Order(CamelModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str
    items: List[OrderItem]
    total_price: float
    shipping_address: Optional[ShippingAddress] = None
    status: str = "pending"
    payment_method: str


class Payment(CamelModel):
    """
    Payments collection schema
    Collection name: "payment"
    """
    order_id: str
    amount: float
    payment_method: str
    status: Literal["pending", "success", "failed"] = "pending"
    failure_reason: Optional[str] = None


class Review(CamelModel):
    """
    Reviews collection schema
    Collection name: "review"
    One review per (user_id, product_id), enforced by a unique index.
    """
    user_id: str
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str


class CartItem(CamelModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    image: Optional[str] = Field(None, description="First product image at the time it was added")


class Cart(CamelModel):
    """
    Carts collection schema
    Collection name: "cart"
    """
    user_id: str
    items: List[CartItem] = []


# ----------------------- Normalization -----------------------
# Called explicitly by the write path of each collection before persisting.

def slugify(value: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", value.strip().lower()).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-")
    return slug or uuid4().hex


def normalize_category(doc: dict) -> dict:
    doc["slug"] = slugify(doc["name"])
    return doc


def normalize_product(doc: dict) -> dict:
    doc["in_stock"] = doc.get("stock_quantity", 0) > 0
    return doc


def normalize_user(doc: dict) -> dict:
    if doc.get("email"):
        doc["email"] = doc["email"].strip().lower()
    return doc
