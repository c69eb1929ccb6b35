import logging
from typing import List, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, now_utc, serialize_document, to_object_id
from errors import Conflict, NotFound, Unauthorized
from schemas import User as UserSchema
from security import hash_password, verify_password

logger = logging.getLogger(__name__)

COLLECTION = "user"


def public_user(doc: dict) -> dict:
    """Serialized user without the password hash."""
    user = serialize_document(doc)
    user.pop("password_hash", None)
    return user


class CredentialStore:
    def __init__(self, db: Database):
        self.collection = db[COLLECTION]
        self.db = db

    def _find(self, user_id: str) -> dict:
        doc = self.collection.find_one({"_id": to_object_id(user_id)})
        if not doc:
            raise NotFound("User not found")
        return doc

    def _email_taken(self, email: str, exclude_id=None) -> bool:
        query = {"email": email}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return self.collection.find_one(query) is not None

    def register(self, name: str, email: str, password: str) -> dict:
        if self._email_taken(email):
            raise Conflict("User already exists")
        user = UserSchema(name=name, email=email, password_hash=hash_password(password))
        try:
            user_id = create_document(self.db, COLLECTION, user)
        except DuplicateKeyError:
            raise Conflict("User already exists")
        logger.info("Registered user %s (%s)", user_id, email)
        return public_user(self.collection.find_one({"_id": to_object_id(user_id)}))

    def authenticate(self, email: str, password: str) -> dict:
        doc = self.collection.find_one({"email": email})
        if not doc or not verify_password(password, doc.get("password_hash", "")):
            logger.warning("Failed login for %s", email)
            raise Unauthorized("Invalid email or password")
        return public_user(doc)

    def update_profile(self, user_id: str, name: Optional[str] = None, email: Optional[str] = None,
                       password: Optional[str] = None) -> dict:
        doc = self._find(user_id)
        changes = {}
        if name:
            changes["name"] = name
        if email and email != doc["email"]:
            if self._email_taken(email, exclude_id=doc["_id"]):
                raise Conflict("Email already in use")
            changes["email"] = email
        if password:
            changes["password_hash"] = hash_password(password)
        return self._apply(doc, changes)

    def list_users(self) -> List[dict]:
        return [public_user(d) for d in get_documents(self.db, COLLECTION)]

    def get_user(self, user_id: str) -> dict:
        return public_user(self._find(user_id))

    def update_user(self, user_id: str, name: Optional[str] = None, email: Optional[str] = None,
                    is_admin: Optional[bool] = None) -> dict:
        doc = self._find(user_id)
        changes = {}
        if name:
            changes["name"] = name
        if email and email != doc["email"]:
            if self._email_taken(email, exclude_id=doc["_id"]):
                raise Conflict("Email already in use")
            changes["email"] = email
        if is_admin is not None:
            changes["is_admin"] = is_admin
        return self._apply(doc, changes)

    def delete_user(self, user_id: str) -> None:
        doc = self._find(user_id)
        if doc.get("is_admin"):
            raise Conflict("Can not delete admin user")
        self.collection.delete_one({"_id": doc["_id"]})
        logger.info("Deleted user %s", user_id)

    def _apply(self, doc: dict, changes: dict) -> dict:
        if changes:
            changes["updated_at"] = now_utc()
            try:
                self.collection.update_one({"_id": doc["_id"]}, {"$set": changes})
            except DuplicateKeyError:
                raise Conflict("Email already in use")
            doc = self.collection.find_one({"_id": doc["_id"]})
            if not doc:
                raise NotFound("User not found")
        return public_user(doc)
