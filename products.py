import logging
from typing import List, Optional, Sequence

from pymongo.database import Database

from database import create_document, get_documents, now_utc, serialize_document, to_object_id
from errors import Conflict, InvalidInput, NotFound
from schemas import Product as ProductSchema, ProductFields, Review as ReviewSchema

logger = logging.getLogger(__name__)

COLLECTION = "product"

# Attempts at the version-checked review write before giving up
MAX_REVIEW_ATTEMPTS = 3


def mean_rating(reviews: Sequence[dict]) -> float:
    if not reviews:
        return 0.0
    return sum(r["rating"] for r in reviews) / len(reviews)


def is_valid_rating(rating) -> bool:
    return isinstance(rating, int) and not isinstance(rating, bool) and 1 <= rating <= 5


class ProductStore:
    def __init__(self, db: Database):
        self.collection = db[COLLECTION]
        self.db = db

    def find_document(self, product_id: str, message: str = "Resource not found") -> dict:
        doc = self.collection.find_one({"_id": to_object_id(product_id)})
        if not doc:
            raise NotFound(message)
        return doc

    def list_products(self) -> List[dict]:
        return [serialize_document(d) for d in get_documents(self.db, COLLECTION)]

    def get_product(self, product_id: str) -> dict:
        return serialize_document(self.find_document(product_id))

    def create_product(self, owner_id: str, fields: ProductFields, image_url: str) -> dict:
        product = ProductSchema(user=owner_id, image=image_url, **fields.model_dump())
        product_id = create_document(self.db, COLLECTION, product)
        logger.info("Created product %s (%s)", product_id, product.name)
        return self.get_product(product_id)

    def update_product(self, product_id: str, fields: ProductFields, image_url: Optional[str] = None) -> dict:
        doc = self.find_document(product_id)
        changes = fields.model_dump()
        if image_url:
            changes["image"] = image_url
        changes["updated_at"] = now_utc()
        result = self.collection.update_one({"_id": doc["_id"]}, {"$set": changes})
        if not result.matched_count:
            raise NotFound("Resource not found")
        logger.info("Updated product %s", product_id)
        return self.get_product(product_id)

    def delete_product(self, product_id: str) -> None:
        doc = self.find_document(product_id, "Product not found")
        self.collection.delete_one({"_id": doc["_id"]})
        logger.info("Deleted product %s", product_id)


class ReviewAggregator:
    """
    Appends a review to a product and recomputes its derived fields.

    ``num_reviews`` and ``rating`` are always rewritten together with the
    review list in one update. The update only applies if the product's
    ``version`` is unchanged since it was read; a concurrent writer causes a
    re-read and another attempt instead of silently dropping a review.
    """

    def __init__(self, products: ProductStore):
        self.products = products

    def add_review(self, product_id: str, user_id: str, user_name: str, rating, comment: str) -> dict:
        collection = self.products.collection
        for _ in range(MAX_REVIEW_ATTEMPTS):
            doc = self.products.find_document(product_id)
            reviews = list(doc.get("reviews", []))
            if any(str(r.get("user")) == str(user_id) for r in reviews):
                raise Conflict("Product already reviewed")
            if not is_valid_rating(rating):
                raise InvalidInput("Rating must be an integer between 1 and 5")

            review = ReviewSchema(user=user_id, name=user_name, rating=rating,
                                  comment=comment or "", created_at=now_utc())
            reviews.append(review.model_dump())
            changes = {
                "reviews": reviews,
                "num_reviews": len(reviews),
                "rating": mean_rating(reviews),
                "updated_at": now_utc(),
            }
            result = collection.update_one(
                {"_id": doc["_id"], "version": doc.get("version")},
                {"$set": changes, "$inc": {"version": 1}},
            )
            if result.matched_count:
                logger.info("User %s reviewed product %s; rating now %.2f over %d reviews",
                            user_id, product_id, changes["rating"], changes["num_reviews"])
                return serialize_document({**doc, **changes})
            logger.warning("Product %s changed while adding review, retrying", product_id)
        raise Conflict("Product was modified concurrently, please retry")
