import hmac
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware
from pydantic import EmailStr, Field
from pymongo.database import Database

import cart
import catalog
import orders
import payments
import reviews
import users
from auth import get_current_user, require_admin
from database import DatabaseConnectionError, connect, ensure_indexes, get_db
from errors import AuthenticationError, register_exception_handlers
from logging_config import setup_logging
from schemas import CamelModel, OrderItem, Product, ShippingAddress
from settings import Settings, get_settings

logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings)
    try:
        client = connect(settings)
    except DatabaseConnectionError as e:
        # Aborting startup makes uvicorn exit.
        logger.critical("%s", e)
        raise
    app.state.db = client[settings.database_name]
    ensure_indexes(app.state.db)
    yield
    client.close()
    logger.info("MongoDB connection closed")


app = FastAPI(title="E-commerce Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# ----------------------- Utils -----------------------
def verify_webhook(
    x_webhook_secret: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
):
    """Payment callbacks are open unless PAYMENT_WEBHOOK_SECRET is configured."""
    expected = settings.payment_webhook_secret
    if expected and not hmac.compare_digest(x_webhook_secret or "", expected):
        raise AuthenticationError("Invalid webhook signature")


# ----------------------- Models -----------------------
class RegisterBody(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginBody(CamelModel):
    email: EmailStr
    password: str


class ProfileUpdateBody(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)


class ProductCreateBody(CamelModel):
    title: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., ge=0)
    old_price: Optional[float] = Field(None, ge=0)
    category: str = Field(..., min_length=1)
    images: List[str] = Field(..., min_length=1)
    colors: List[str] = []
    offer_expiry: Optional[datetime] = None
    stock_quantity: int = Field(..., ge=0)
    additional_info: List[str] = []


class ProductUpdateBody(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    old_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    images: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    offer_expiry: Optional[datetime] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    additional_info: Optional[List[str]] = None


class OrderCreateBody(CamelModel):
    order_items: List[OrderItem] = []
    shipping_address: Optional[ShippingAddress] = None
    payment_method: str = Field(..., min_length=1)
    total_price: float


class OrderStatusBody(CamelModel):
    status: str = Field(..., min_length=1)


class PaymentCreateBody(CamelModel):
    order_id: str = Field(..., min_length=1)
    payment_method: str = Field(..., min_length=1)


class PaymentCallbackBody(CamelModel):
    payment_id: str
    order_id: Optional[str] = None
    reason: Optional[str] = None


class ReviewCreateBody(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class CartAddBody(CamelModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class CartUpdateBody(CamelModel):
    quantity: Optional[int] = None


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "E-commerce API running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----------------------- Users -----------------------
@app.post("/users/register", status_code=201)
def register(body: RegisterBody, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    return users.register(db, body.name, body.email, body.password, settings)


@app.post("/users/login")
def login(body: LoginBody, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    return users.login(db, body.email, body.password, settings)


@app.get("/users/profile")
def get_profile(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return users.get_profile(db, user["id"])


@app.put("/users/profile")
def update_profile(body: ProfileUpdateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return users.update_profile(db, user["id"], body.name, body.email, body.password)


# ----------------------- Products -----------------------
@app.get("/products")
def list_products(db: Database = Depends(get_db)):
    return catalog.list_products(db)


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return catalog.get_product(db, product_id)


@app.post("/products", status_code=201)
def create_product(body: ProductCreateBody, user=Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.create_product(db, Product(**body.model_dump()))


@app.put("/products/{product_id}")
def update_product(product_id: str, body: ProductUpdateBody, user=Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.update_product(db, product_id, body.model_dump(exclude_none=True))


@app.delete("/products/{product_id}")
def delete_product(product_id: str, user=Depends(require_admin), db: Database = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return {"message": "Product removed"}


# ----------------------- Reviews -----------------------
@app.post("/products/{product_id}/reviews", status_code=201)
def create_review(product_id: str, body: ReviewCreateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    reviews.create_review(db, product_id, user["id"], body.rating, body.comment)
    return {"message": "Review added"}


@app.get("/products/{product_id}/reviews")
def list_reviews(product_id: str, db: Database = Depends(get_db)):
    return reviews.list_reviews(db, product_id)


# ----------------------- Orders -----------------------
@app.post("/orders", status_code=201)
def create_order(body: OrderCreateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.create_order(
        db,
        user["id"],
        body.order_items,
        body.total_price,
        body.payment_method,
        body.shipping_address,
    )


@app.get("/orders/myorders")
def my_orders(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.list_user_orders(db, user["id"])


@app.get("/orders/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return orders.get_order(db, order_id, user)


@app.get("/orders")
def list_orders(user=Depends(require_admin), db: Database = Depends(get_db)):
    return orders.list_orders(db)


@app.put("/orders/{order_id}/status")
def update_order_status(order_id: str, body: OrderStatusBody, user=Depends(require_admin), db: Database = Depends(get_db)):
    return orders.update_order_status(db, order_id, body.status)


# ----------------------- Payments -----------------------
@app.post("/payments", status_code=201)
def initiate_payment(body: PaymentCreateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    payment_id = payments.initiate_payment(db, body.order_id, body.payment_method, user)
    return {"message": "Payment initiated", "payment_id": payment_id}


@app.post("/payments/success", dependencies=[Depends(verify_webhook)])
def payment_success(body: PaymentCallbackBody, db: Database = Depends(get_db)):
    payments.mark_payment_success(db, body.payment_id, body.order_id)
    return {"message": "Payment successful and order updated"}


@app.post("/payments/failure", dependencies=[Depends(verify_webhook)])
def payment_failure(body: PaymentCallbackBody, db: Database = Depends(get_db)):
    payments.mark_payment_failure(db, body.payment_id, body.order_id, body.reason)
    return {"message": "Payment failed status updated"}


@app.get("/payments/{payment_id}")
def get_payment(payment_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return payments.get_payment(db, payment_id, user)


@app.get("/payments")
def list_payments(user=Depends(require_admin), db: Database = Depends(get_db)):
    return payments.list_payments(db)


# ----------------------- Cart -----------------------
@app.get("/cart")
def get_cart(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return cart.get_cart(db, user["id"])


@app.post("/cart")
def add_to_cart(body: CartAddBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return cart.add_item(db, user["id"], body.product_id, body.quantity)


@app.put("/cart/{item_id}")
def update_cart_item(item_id: str, body: CartUpdateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return cart.update_item(db, user["id"], item_id, body.quantity)


@app.delete("/cart/{item_id}")
def remove_from_cart(item_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return cart.remove_item(db, user["id"], item_id)


@app.delete("/cart")
def clear_cart(user=Depends(get_current_user), db: Database = Depends(get_db)):
    cart.clear_cart(db, user["id"])
    return {"message": "Cart cleared successfully"}


# ----------------------- Seed Demo Data -----------------------
@app.post("/seed")
def seed(user=Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.seed(db)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
