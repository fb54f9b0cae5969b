"""
Order creation and the stock/sales bookkeeping that follows it.

The order is saved first; product counters are adjusted afterwards, one
product at a time, with no rollback. A line item whose product cannot be
found is skipped and the order still stands.
"""
import logging
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from auth import ensure_owner_or_admin, is_admin
from database import create_document, find_by_id, get_documents, now, serialize_doc, to_oid
from errors import AuthorizationError, NotFoundError, ValidationError
from schemas import Order, OrderItem, ShippingAddress

logger = logging.getLogger(__name__)


def create_order(
    db: Database,
    user_id: str,
    items: List[OrderItem],
    total_price: float,
    payment_method: str,
    shipping_address: Optional[ShippingAddress] = None,
) -> dict:
    if not items:
        raise ValidationError("No order items")

    order = Order(
        user_id=user_id,
        items=items,
        total_price=total_price,
        shipping_address=shipping_address,
        payment_method=payment_method,
    )
    order_id = create_document(db, "order", order)
    logger.info("Order %s created for user %s with %d item(s)", order_id, user_id, len(items))

    for item in items:
        adjust_stock(db, item.product_id, item.quantity)

    return serialize_doc(db["order"].find_one({"_id": to_oid(order_id)}))


def adjust_stock(db: Database, product_id: str, quantity: int) -> Optional[dict]:
    """Take `quantity` units out of stock and count them as sold.

    Returns the updated product, or None when the product does not exist.
    """
    oid = to_oid(product_id)
    product = None
    if oid is not None:
        product = db["product"].find_one_and_update(
            {"_id": oid},
            {"$inc": {"stock_quantity": -quantity, "sales": quantity}, "$set": {"updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
    if product is None:
        logger.warning("Stock update skipped, product %s not found", product_id)
        return None
    refresh_stock_flag(db, oid)
    product["in_stock"] = product["stock_quantity"] > 0
    return product


def refresh_stock_flag(db: Database, product_oid) -> None:
    # Conditional updates read the current stock_quantity, so a concurrent
    # decrement cannot leave a stale flag behind.
    db["product"].update_one({"_id": product_oid, "stock_quantity": {"$gt": 0}}, {"$set": {"in_stock": True}})
    db["product"].update_one({"_id": product_oid, "stock_quantity": {"$lte": 0}}, {"$set": {"in_stock": False}})


def populate_order(db: Database, order: dict) -> dict:
    """Resolve user and product references for display."""
    out = serialize_doc(order)
    user = find_by_id(db, "user", order.get("user_id"), {"name": 1, "email": 1})
    out["user"] = serialize_doc(user) if user else None
    for item in out.get("items", []):
        product = find_by_id(db, "product", item.get("product_id"), {"title": 1, "price": 1})
        item["product"] = serialize_doc(product) if product else None
    return out


def get_order(db: Database, order_id: str, user: dict) -> dict:
    order = find_by_id(db, "order", order_id)
    if not order:
        # Non-admins learn nothing about which ids exist.
        if not is_admin(user):
            raise AuthorizationError("Not authorized to view this order")
        raise NotFoundError("Order not found")
    ensure_owner_or_admin(user, order.get("user_id"), "Not authorized to view this order")
    return populate_order(db, order)


def list_user_orders(db: Database, user_id: str) -> list:
    return [serialize_doc(o) for o in get_documents(db, "order", {"user_id": user_id}, sort=[("_id", 1)])]


def list_orders(db: Database) -> list:
    return [populate_order(db, o) for o in get_documents(db, "order", sort=[("_id", 1)])]


def update_order_status(db: Database, order_id: str, status: str) -> dict:
    # Any status is accepted, including moving backwards.
    oid = to_oid(order_id)
    order = None
    if oid is not None:
        order = db["order"].find_one_and_update(
            {"_id": oid},
            {"$set": {"status": status, "updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
    if not order:
        raise NotFoundError("Order not found")
    logger.info("Order %s status set to %r", order_id, status)
    return serialize_doc(order)
