import logging

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, find_by_id, get_documents, now, serialize_doc, to_oid
from errors import ConflictError, NotFoundError
from schemas import Review

logger = logging.getLogger(__name__)


def create_review(db: Database, product_id: str, user_id: str, rating: int, comment: str) -> None:
    product = find_by_id(db, "product", product_id)
    if not product:
        raise NotFoundError("Product not found")

    product_key = str(product["_id"])
    review = Review(user_id=user_id, product_id=product_key, rating=rating, comment=comment)
    try:
        create_document(db, "review", review)
    except DuplicateKeyError:
        raise ConflictError("Product already reviewed")

    rating = recompute_rating(db, product_key)
    logger.info("Review by %s on product %s, rating now %.2f", user_id, product_key, rating)


def recompute_rating(db: Database, product_id: str) -> float:
    """Average every review of the product and store it on the product."""
    result = list(db["review"].aggregate([
        {"$match": {"product_id": product_id}},
        {"$group": {"_id": "$product_id", "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
    ]))
    if not result:
        return 0.0
    rating = float(result[0]["avg"])
    store_rating(db, product_id, rating, result[0]["count"])
    return rating


def store_rating(db: Database, product_id: str, rating: float, review_count: int) -> bool:
    """Write an aggregated rating unless a larger review set was already written.

    Reviews are only ever inserted, so the review count orders the
    aggregates: a slower writer holding an older mean matches nothing.
    """
    result = db["product"].update_one(
        {
            "_id": to_oid(product_id),
            "$or": [{"rating_count": {"$exists": False}}, {"rating_count": {"$lte": review_count}}],
        },
        {"$set": {"rating": rating, "rating_count": review_count, "updated_at": now()}},
    )
    if result.matched_count == 0:
        logger.info("Rating for product %s already reflects more than %d review(s)", product_id, review_count)
    return result.matched_count > 0


def list_reviews(db: Database, product_id: str) -> list:
    """Reviews in insertion order, each with the reviewer's name."""
    out = []
    for review in get_documents(db, "review", {"product_id": product_id}, sort=[("_id", 1)]):
        doc = serialize_doc(review)
        user = find_by_id(db, "user", review.get("user_id"), {"name": 1})
        doc["user_name"] = user.get("name") if user else None
        out.append(doc)
    return out
