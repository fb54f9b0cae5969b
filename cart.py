"""
Per-user shopping cart

One cart document per user, created on first access and never deleted;
clearing only empties its items.
"""
import logging

from bson.objectid import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from database import find_by_id, now, serialize_doc, to_oid
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def populate_cart(db: Database, cart: dict) -> dict:
    out = serialize_doc(cart)
    for item in out.get("items", []):
        product = find_by_id(db, "product", item.get("product_id"), {"title": 1, "price": 1, "images": 1})
        item["product"] = serialize_doc(product) if product else None
    return out


def _get_or_create(db: Database, user_id: str) -> dict:
    stamp = now()
    return db["cart"].find_one_and_update(
        {"user_id": user_id},
        {"$setOnInsert": {"user_id": user_id, "items": [], "created_at": stamp, "updated_at": stamp}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def get_cart(db: Database, user_id: str) -> dict:
    return populate_cart(db, _get_or_create(db, user_id))


def add_item(db: Database, user_id: str, product_id: str, quantity: int) -> dict:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    product = find_by_id(db, "product", product_id, {"images": 1})
    if not product:
        raise NotFoundError("Product not found")
    product_key = str(product["_id"])
    images = product.get("images") or []

    _get_or_create(db, user_id)
    item = {"_id": ObjectId(), "product_id": product_key, "quantity": quantity, "image": images[0] if images else None}
    # A concurrent add can push the line between our $inc and $push; the
    # guarded push then misses and the second $inc lands on that line.
    for _ in range(2):
        if _increment_item(db, user_id, product_key, quantity) or _push_item(db, user_id, item):
            break
    return get_cart(db, user_id)


def _increment_item(db: Database, user_id: str, product_id: str, quantity: int) -> bool:
    result = db["cart"].update_one(
        {"user_id": user_id, "items.product_id": product_id},
        {"$inc": {"items.$.quantity": quantity}, "$set": {"updated_at": now()}},
    )
    return result.matched_count > 0


def _push_item(db: Database, user_id: str, item: dict) -> bool:
    """Append a line only while the cart holds no line for the same product."""
    result = db["cart"].update_one(
        {"user_id": user_id, "items.product_id": {"$ne": item["product_id"]}},
        {"$push": {"items": item}, "$set": {"updated_at": now()}},
    )
    return result.matched_count > 0


def update_item(db: Database, user_id: str, item_id: str, quantity: int) -> dict:
    if not quantity or quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    cart = db["cart"].find_one({"user_id": user_id})
    if not cart:
        raise NotFoundError("Cart not found")
    oid = to_oid(item_id)
    result = None
    if oid is not None:
        result = db["cart"].update_one(
            {"_id": cart["_id"], "items._id": oid},
            {"$set": {"items.$.quantity": quantity, "updated_at": now()}},
        )
    if result is None or result.matched_count == 0:
        raise NotFoundError("Item not found in cart")
    return get_cart(db, user_id)


def remove_item(db: Database, user_id: str, item_id: str) -> dict:
    cart = db["cart"].find_one({"user_id": user_id})
    if not cart:
        raise NotFoundError("Cart not found")
    oid = to_oid(item_id)
    if oid is not None:
        db["cart"].update_one({"_id": cart["_id"]}, {"$pull": {"items": {"_id": oid}}, "$set": {"updated_at": now()}})
    return get_cart(db, user_id)


def clear_cart(db: Database, user_id: str) -> None:
    result = db["cart"].update_one({"user_id": user_id}, {"$set": {"items": [], "updated_at": now()}})
    if result.matched_count == 0:
        raise NotFoundError("Cart not found")
    logger.info("Cart cleared for user %s", user_id)
