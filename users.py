import logging
from typing import Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import create_token, hash_password, verify_password
from database import create_document, find_by_id, now, serialize_doc, to_oid
from errors import AuthenticationError, ConflictError, NotFoundError
from schemas import User, normalize_user
from settings import Settings

logger = logging.getLogger(__name__)


def public_user(user: dict) -> dict:
    return {"id": str(user["_id"]), "name": user["name"], "email": user["email"], "role": user.get("role", "customer")}


def register(db: Database, name: str, email: str, password: str, settings: Settings) -> dict:
    doc = normalize_user(User(name=name, email=email, password_hash=hash_password(password)).model_dump())
    if db["user"].find_one({"email": doc["email"]}):
        raise ConflictError("User already exists")
    try:
        user_id = create_document(db, "user", doc)
    except DuplicateKeyError:
        raise ConflictError("User already exists")
    logger.info("User %s registered", user_id)
    user = db["user"].find_one({"_id": to_oid(user_id)})
    return {"message": "User registered successfully", "token": create_token(user_id, settings), "user": public_user(user)}


def login(db: Database, email: str, password: str, settings: Settings) -> dict:
    user = db["user"].find_one({"email": email.strip().lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise AuthenticationError("Invalid email or password")
    user_id = str(user["_id"])
    return {"message": "Login successful", "token": create_token(user_id, settings), "user": public_user(user)}


def get_profile(db: Database, user_id: str) -> dict:
    user = find_by_id(db, "user", user_id)
    if not user:
        raise NotFoundError("User not found")
    return serialize_doc(user)


def update_profile(
    db: Database,
    user_id: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> dict:
    user = find_by_id(db, "user", user_id)
    if not user:
        raise NotFoundError("User not found")

    fields = normalize_user({"name": name or user["name"], "email": email or user["email"]})
    if fields["email"] != user["email"] and db["user"].find_one({"email": fields["email"], "_id": {"$ne": user["_id"]}}):
        raise ConflictError("Email already registered")
    if password:
        fields["password_hash"] = hash_password(password)
    fields["updated_at"] = now()

    try:
        db["user"].update_one({"_id": user["_id"]}, {"$set": fields})
    except DuplicateKeyError:
        raise ConflictError("Email already registered")
    user.update(fields)
    return {"message": "Profile updated successfully", "user": public_user(user)}
