"""Products and categories."""
import logging
from typing import Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from auth import hash_password
from database import connect, create_document, ensure_indexes, find_by_id, get_documents, now, serialize_doc, to_oid
from errors import NotFoundError
from logging_config import setup_logging
from schemas import Category, Product, User, normalize_category, normalize_product, normalize_user
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


def get_product(db: Database, product_id: str) -> dict:
    product = find_by_id(db, "product", product_id)
    if not product:
        raise NotFoundError("Product not found")
    return populate_product(db, product)


def populate_product(db: Database, product: dict) -> dict:
    out = serialize_doc(product)
    category = find_by_id(db, "category", product.get("category"))
    out["category"] = serialize_doc(category) if category else product.get("category")
    return out


def list_products(db: Database) -> list:
    return [populate_product(db, p) for p in get_documents(db, "product", sort=[("_id", 1)])]


def create_product(db: Database, product: Product) -> dict:
    doc = normalize_product(product.model_dump())
    product_id = create_document(db, "product", doc)
    logger.info("Product %s created: %s", product_id, product.title)
    return serialize_doc(db["product"].find_one({"_id": to_oid(product_id)}))


def update_product(db: Database, product_id: str, changes: dict) -> dict:
    # Only the supplied fields are written so concurrent stock/sales/rating
    # updates are not overwritten.
    fields = {k: v for k, v in changes.items() if v is not None}
    if "stock_quantity" in fields:
        normalize_product(fields)
    fields["updated_at"] = now()
    oid = to_oid(product_id)
    product = None
    if oid is not None:
        product = db["product"].find_one_and_update(
            {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )
    if not product:
        raise NotFoundError("Product not found")
    return serialize_doc(product)


def delete_product(db: Database, product_id: str) -> None:
    oid = to_oid(product_id)
    if oid is None or db["product"].delete_one({"_id": oid}).deleted_count == 0:
        raise NotFoundError("Product not found")
    logger.info("Product %s removed", product_id)


def create_category(db: Database, category: Category) -> str:
    return create_document(db, "category", normalize_category(category.model_dump()))


# ----------------------- Seed Demo Data -----------------------
DEMO_CATEGORIES = [
    {"name": "Mobiles", "description": "Phones and tablets"},
    {"name": "Laptops", "description": "Notebooks for work and play"},
    {"name": "Accessories", "description": "Headphones, keyboards and wearables"},
]

DEMO_PRODUCTS = [
    {
        "title": "Pixel 7A",
        "description": "Powerful camera and smooth Android experience.",
        "price": 349.0,
        "old_price": 399.0,
        "category": "Mobiles",
        "images": ["https://images.unsplash.com/photo-1511707171634-5f897ff02aa9"],
        "colors": ["#000000", "#f5f5f5"],
        "stock_quantity": 25,
    },
    {
        "title": "ThinkPad X1",
        "description": "Business-class laptop with legendary keyboard.",
        "price": 1199.0,
        "category": "Laptops",
        "images": ["https://images.unsplash.com/photo-1517336714731-489689fd1ca8"],
        "stock_quantity": 10,
        "additional_info": ["16GB RAM", "512GB SSD"],
    },
    {
        "title": "Noise Cancelling Headphones",
        "description": "Immerse in music with ANC.",
        "price": 199.0,
        "old_price": 249.0,
        "category": "Accessories",
        "images": ["https://images.unsplash.com/photo-1518443248587-30bdc8f94f04"],
        "colors": ["#1a1a1a"],
        "stock_quantity": 40,
    },
    {
        "title": "Mechanical Keyboard",
        "description": "Hot-swappable RGB keyboard.",
        "price": 79.0,
        "category": "Accessories",
        "images": ["https://images.unsplash.com/photo-1516382799247-87df95d790b5"],
        "stock_quantity": 0,
    },
]


def seed(db: Database) -> dict:
    """Insert the demo categories and products. Never creates users."""
    if db["product"].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}

    category_ids = {}
    for c in DEMO_CATEGORIES:
        existing = db["category"].find_one({"name": c["name"]})
        category_ids[c["name"]] = str(existing["_id"]) if existing else create_category(db, Category(**c))

    for p in DEMO_PRODUCTS:
        create_product(db, Product(**{**p, "category": category_ids[p["category"]]}))
    return {"seeded": True, "products": db["product"].count_documents({})}


def create_admin(db: Database, settings: Settings) -> Optional[str]:
    """Bootstrap the first admin, only when SEED_ADMIN_PASSWORD is configured."""
    if not settings.seed_admin_password:
        logger.info("SEED_ADMIN_PASSWORD not set, no admin user created")
        return None
    if db["user"].count_documents({"role": "admin"}) > 0:
        return None
    admin = User(
        name="Admin",
        email=settings.seed_admin_email,
        password_hash=hash_password(settings.seed_admin_password),
        role="admin",
    )
    admin_id = create_document(db, "user", normalize_user(admin.model_dump()))
    logger.info("Admin user %s created", settings.seed_admin_email)
    return admin_id


def main() -> None:
    """Seed the configured database from the command line."""
    settings = get_settings()
    setup_logging(settings)
    client = connect(settings)
    try:
        db = client[settings.database_name]
        ensure_indexes(db)
        logger.info("Seed result: %s", seed(db))
        create_admin(db, settings)
    finally:
        client.close()


if __name__ == "__main__":
    main()
