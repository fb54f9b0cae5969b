"""
Payment records and the externally reported status transitions.

Creating a payment only records a pending attempt locally. The success and
failure callbacks move both the payment and its order; the last callback
received wins.
"""
import logging
from typing import Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from auth import ensure_owner_or_admin, is_admin
from database import create_document, find_by_id, get_documents, now, serialize_doc, to_oid
from errors import AuthorizationError, ConflictError, NotFoundError
from schemas import Payment

logger = logging.getLogger(__name__)


def initiate_payment(db: Database, order_id: str, payment_method: str, user: dict) -> str:
    order = find_by_id(db, "order", order_id)
    if not order:
        raise NotFoundError("Order not found")
    ensure_owner_or_admin(user, order.get("user_id"), "Not authorized to pay for this order")

    order_key = str(order["_id"])
    # Failed or pending attempts do not block a retry.
    if db["payment"].find_one({"order_id": order_key, "status": "success"}):
        raise ConflictError("Payment has already been completed for this order")

    payment = Payment(order_id=order_key, amount=order["total_price"], payment_method=payment_method)
    payment_id = create_document(db, "payment", payment)
    logger.info("Payment %s initiated for order %s (amount=%s)", payment_id, order_key, order["total_price"])
    return payment_id


def _set_payment_status(db: Database, payment_id: str, fields: dict) -> dict:
    oid = to_oid(payment_id)
    payment = None
    if oid is not None:
        payment = db["payment"].find_one_and_update(
            {"_id": oid},
            {"$set": {**fields, "updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


def _set_order_status(db: Database, payment: dict, claimed_order_id: Optional[str], status: str) -> None:
    order_id = payment["order_id"]
    if claimed_order_id and claimed_order_id != order_id:
        logger.warning(
            "Callback for payment %s named order %s, using the payment's order %s",
            payment["_id"], claimed_order_id, order_id,
        )
    oid = to_oid(order_id)
    if oid is None:
        return
    result = db["order"].update_one({"_id": oid}, {"$set": {"status": status, "updated_at": now()}})
    if result.matched_count == 0:
        logger.warning("Order %s for payment %s no longer exists", order_id, payment["_id"])


def mark_payment_success(db: Database, payment_id: str, order_id: Optional[str] = None) -> None:
    payment = _set_payment_status(db, payment_id, {"status": "success"})
    _set_order_status(db, payment, order_id, "processed")
    logger.info("Payment %s succeeded", payment_id)


def mark_payment_failure(db: Database, payment_id: str, order_id: Optional[str] = None, reason: Optional[str] = None) -> None:
    payment = _set_payment_status(db, payment_id, {"status": "failed", "failure_reason": reason})
    _set_order_status(db, payment, order_id, "payment failed")
    logger.info("Payment %s failed: %s", payment_id, reason)


def populate_payment(db: Database, payment: dict) -> dict:
    out = serialize_doc(payment)
    order = find_by_id(db, "order", payment.get("order_id"))
    out["order"] = serialize_doc(order) if order else None
    return out


def get_payment(db: Database, payment_id: str, user: dict) -> dict:
    payment = find_by_id(db, "payment", payment_id)
    if not payment:
        if not is_admin(user):
            raise AuthorizationError("Not authorized to view this payment")
        raise NotFoundError("Payment not found")
    order = find_by_id(db, "order", payment.get("order_id"))
    owner_id = order.get("user_id") if order else None
    ensure_owner_or_admin(user, owner_id, "Not authorized to view this payment")
    return populate_payment(db, payment)


def list_payments(db: Database) -> list:
    return [populate_payment(db, p) for p in get_documents(db, "payment", sort=[("_id", 1)])]
