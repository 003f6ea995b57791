"""
Database service layer for the FastAPI application.

Each service wraps one MongoDB collection and is constructed with the
database handle opened by the application lifespan.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from api.errors import DuplicateKey, InternalError, InvalidIdentifier, NotFound, ValidationFailed
from api.models import (
    AverageRating, BookQueryParams, BookRecord, BookStats,
    ReviewQueryParams, ReviewRecord, is_object_id,
)
from api.validation import check_book, check_review
from utilities.logger import get_logger

logger = get_logger(__name__)


def parse_object_id(value: str) -> ObjectId:
    """Convert a path or query value to an ObjectId."""
    if not is_object_id(value):
        raise InvalidIdentifier(f"Invalid ID format: '{value}'")
    return ObjectId(value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CollectionService:
    """Operations shared by the book and review services."""

    collection_name: str = ""
    record_class: Type[BaseModel]
    label: str = "Record"

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.collection: AsyncIOMotorCollection = database[self.collection_name]

    async def _insert(self, document: Dict[str, Any]):
        now = utcnow()
        document = {**document, "createdAt": now, "updatedAt": now}
        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            raise self._duplicate(e) from e
        except PyMongoError as e:
            logger.error(f"Failed to create {self.label.lower()}", error=str(e))
            raise InternalError(str(e)) from e

        document["_id"] = result.inserted_id
        logger.info(f"{self.label} created", id=str(result.inserted_id))
        return self.record_class.from_document(document)

    async def _find(self, filter_query: Dict[str, Any]) -> List:
        try:
            cursor = self.collection.find(filter_query).sort("createdAt", DESCENDING)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Failed to list {self.collection_name}", error=str(e), filter=str(filter_query))
            raise InternalError(str(e)) from e
        return [self.record_class.from_document(document) for document in documents]

    async def _get(self, record_id: str):
        object_id = parse_object_id(record_id)
        try:
            document = await self.collection.find_one({"_id": object_id})
        except PyMongoError as e:
            logger.error(f"Failed to get {self.label.lower()}", id=record_id, error=str(e))
            raise InternalError(str(e)) from e

        if document is None:
            raise NotFound(f"{self.label} not found")
        return self.record_class.from_document(document)

    async def _replace(self, object_id: ObjectId, document: Dict[str, Any]):
        """Replace a whole document, keeping its creation time."""
        try:
            existing = await self.collection.find_one({"_id": object_id}, {"createdAt": 1})
            if existing is None:
                raise NotFound(f"{self.label} not found")

            now = utcnow()
            document = {**document, "createdAt": existing.get("createdAt", now), "updatedAt": now}
            updated = await self.collection.find_one_and_replace(
                {"_id": object_id},
                document,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise self._duplicate(e) from e
        except PyMongoError as e:
            logger.error(f"Failed to update {self.label.lower()}", id=str(object_id), error=str(e))
            raise InternalError(str(e)) from e

        if updated is None:
            raise NotFound(f"{self.label} not found")
        logger.info(f"{self.label} updated", id=str(object_id))
        return self.record_class.from_document(updated)

    async def _delete(self, record_id: str):
        object_id = parse_object_id(record_id)
        try:
            document = await self.collection.find_one_and_delete({"_id": object_id})
        except PyMongoError as e:
            logger.error(f"Failed to delete {self.label.lower()}", id=record_id, error=str(e))
            raise InternalError(str(e)) from e

        if document is None:
            raise NotFound(f"{self.label} not found")
        logger.info(f"{self.label} deleted", id=record_id)
        return self.record_class.from_document(document)

    def _duplicate(self, error: DuplicateKeyError) -> Exception:
        return InternalError(str(error))


class BookService(CollectionService):
    """Book CRUD, filtering and statistics."""

    collection_name = "books"
    record_class = BookRecord
    label = "Book"

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("isbn", unique=True)
        await self.collection.create_index([("title", ASCENDING), ("author", ASCENDING)])

    @staticmethod
    def build_filter(query_params: BookQueryParams) -> Dict[str, Any]:
        """Translate listing parameters into a MongoDB filter."""
        filter_query: Dict[str, Any] = {}

        if query_params.genre:
            filter_query["genre"] = query_params.genre

        if query_params.author:
            filter_query["author"] = {"$regex": re.escape(query_params.author), "$options": "i"}

        if query_params.min_price is not None or query_params.max_price is not None:
            price_filter = {}
            if query_params.min_price is not None:
                price_filter["$gte"] = query_params.min_price
            if query_params.max_price is not None:
                price_filter["$lte"] = query_params.max_price
            filter_query["price"] = price_filter

        if query_params.available:
            filter_query["availableCopies"] = {"$gt": 0}

        return filter_query

    async def create_book(self, payload: Any) -> BookRecord:
        book, errors = check_book(payload)
        if errors:
            raise ValidationFailed(errors)
        return await self._insert(book.to_document())

    async def get_books(self, query_params: BookQueryParams) -> List[BookRecord]:
        """
        Get books matching the listing filters, newest first.

        Args:
            query_params: Filters taken from the query string

        Returns:
            All matching books
        """
        return await self._find(self.build_filter(query_params))

    async def get_book_by_id(self, book_id: str) -> BookRecord:
        return await self._get(book_id)

    async def update_book(self, book_id: str, payload: Any) -> BookRecord:
        """
        Replace a book with a freshly validated document.

        Optional fields missing from the payload fall back to their defaults
        rather than keeping their stored values.
        """
        object_id = parse_object_id(book_id)
        book, errors = check_book(payload)
        if errors:
            raise ValidationFailed(errors)
        return await self._replace(object_id, book.to_document())

    async def delete_book(self, book_id: str) -> BookRecord:
        return await self._delete(book_id)

    async def get_stats_summary(self) -> Optional[BookStats]:
        """
        Aggregate totals over every book.

        Returns:
            BookStats, or None when the collection is empty
        """
        pipeline = [
            {
                "$group": {
                    "_id": None,
                    "totalBooks": {"$sum": 1},
                    "totalCopies": {"$sum": "$availableCopies"},
                    "avgPrice": {"$avg": "$price"},
                    "genres": {"$addToSet": "$genre"},
                }
            }
        ]
        try:
            results = await self.collection.aggregate(pipeline).to_list(length=1)
        except PyMongoError as e:
            logger.error("Failed to aggregate book stats", error=str(e))
            raise InternalError(str(e)) from e

        if not results:
            return None
        stats = BookStats.model_validate(results[0])
        stats.genres = sorted(stats.genres)
        return stats

    def _duplicate(self, error: DuplicateKeyError) -> Exception:
        logger.warning("Duplicate ISBN rejected", error=str(error))
        return DuplicateKey("A book with this ISBN already exists")


class ReviewService(CollectionService):
    """Review CRUD and per-book rating averages."""

    collection_name = "reviews"
    record_class = ReviewRecord
    label = "Review"

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("bookId", ASCENDING), ("createdAt", DESCENDING)])

    @staticmethod
    def build_filter(query_params: ReviewQueryParams) -> Dict[str, Any]:
        filter_query: Dict[str, Any] = {}
        if query_params.book_id:
            filter_query["bookId"] = parse_object_id(query_params.book_id)
        return filter_query

    async def create_review(self, payload: Any) -> ReviewRecord:
        # The referenced book is not required to exist.
        review, errors = check_review(payload)
        if errors:
            raise ValidationFailed(errors)
        return await self._insert(review.to_document())

    async def get_reviews(self, query_params: ReviewQueryParams) -> List[ReviewRecord]:
        return await self._find(self.build_filter(query_params))

    async def get_review_by_id(self, review_id: str) -> ReviewRecord:
        return await self._get(review_id)

    async def update_review(self, review_id: str, payload: Any) -> ReviewRecord:
        object_id = parse_object_id(review_id)
        review, errors = check_review(payload)
        if errors:
            raise ValidationFailed(errors)
        return await self._replace(object_id, review.to_document())

    async def delete_review(self, review_id: str) -> ReviewRecord:
        return await self._delete(review_id)

    async def get_average_rating(self, book_id: str) -> AverageRating:
        """Average rating and review count for one book."""
        object_id = parse_object_id(book_id)
        pipeline = [
            {"$match": {"bookId": object_id}},
            {"$group": {"_id": None, "avgRating": {"$avg": "$rating"}, "count": {"$sum": 1}}},
        ]
        try:
            results = await self.collection.aggregate(pipeline).to_list(length=1)
        except PyMongoError as e:
            logger.error("Failed to aggregate average rating", book_id=book_id, error=str(e))
            raise InternalError(str(e)) from e

        if not results:
            return AverageRating(avg_rating=0, count=0)
        return AverageRating.model_validate(results[0])


async def health_check(database: AsyncIOMotorDatabase) -> Dict[str, Any]:
    """
    Perform database health check.

    Returns:
        Dictionary with health status
    """
    try:
        await database.command("ping")
        books_count = await database.books.count_documents({})
        reviews_count = await database.reviews.count_documents({})
        return {
            "status": "healthy",
            "books_count": books_count,
            "reviews_count": reviews_count,
        }
    except PyMongoError as e:
        logger.error("Database health check failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e)
        }
