"""
API models and schemas for the FastAPI application.

Field names are snake_case in Python and camelCase on the wire and in
MongoDB documents.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ISBN_PATTERN = re.compile(r"^(?:\d{10}|\d{13})$")
OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def whole_number(value: float) -> Union[int, float]:
    """Collapse an integral float to an int."""
    return int(value) if float(value).is_integer() else value


def is_object_id(value: Any) -> bool:
    """Check that a value is a 24 character hex identifier."""
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


class Genre(str, Enum):
    """Book genre enumeration."""
    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    MYSTERY = "Mystery"
    SCIENCE_FICTION = "Science Fiction"
    FANTASY = "Fantasy"
    BIOGRAPHY = "Biography"
    HISTORY = "History"
    SELF_HELP = "Self-Help"
    ROMANCE = "Romance"
    THRILLER = "Thriller"
    OTHER = "Other"


class CamelModel(BaseModel):
    """Base model that accepts and emits camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )


class BookPayload(CamelModel):
    """Writable fields of a book."""
    title: str = Field(..., min_length=1, max_length=200, description="Book title")
    author: str = Field(..., min_length=1, description="Author name")
    isbn: str = Field(..., description="ISBN-10 or ISBN-13, hyphens allowed")
    description: Optional[str] = Field(None, max_length=1000, description="Book description")
    published_year: Optional[int] = Field(None, ge=1000, description="Year of publication")
    genre: Genre = Field(Genre.OTHER, description="Book genre")
    price: float = Field(0.0, ge=0, description="Price")
    available_copies: int = Field(1, ge=0, description="Copies available for lending")
    language: str = Field("English", description="Language of the edition")
    publisher: Optional[str] = Field(None, description="Publisher name")

    @field_validator("isbn")
    @classmethod
    def normalize_isbn(cls, v: str) -> str:
        """Strip hyphens and require exactly 10 or 13 digits."""
        digits = v.replace("-", "")
        if not ISBN_PATTERN.match(digits):
            raise ValueError("Please provide a valid ISBN (10 or 13 digits)")
        return digits

    @field_validator("published_year")
    @classmethod
    def validate_published_year(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v > datetime.now().year:
            raise ValueError("Published year cannot be in the future")
        return v

    def to_document(self) -> Dict[str, Any]:
        """Build the MongoDB document body, leaving unset optionals out."""
        document = self.model_dump(by_alias=True, mode="json", exclude_none=True)
        document["price"] = whole_number(document["price"])
        return document


class ReviewPayload(CamelModel):
    """Writable fields of a review."""
    book_id: str = Field(..., description="Identifier of the reviewed book")
    reviewer_name: str = Field(..., min_length=2, description="Reviewer name")
    rating: float = Field(..., ge=1, le=5, description="Rating from 1 to 5")
    comment: str = Field(..., min_length=10, max_length=500, description="Review text")
    verified: bool = Field(False, description="Verified purchase")
    helpful: int = Field(0, ge=0, description="Helpful votes")

    @field_validator("book_id")
    @classmethod
    def validate_book_id(cls, v: str) -> str:
        if not is_object_id(v):
            raise ValueError("Book ID must be a valid identifier")
        return v

    def to_document(self) -> Dict[str, Any]:
        document = self.model_dump(by_alias=True, mode="json", exclude_none=True)
        document["bookId"] = ObjectId(document["bookId"])
        document["rating"] = whole_number(document["rating"])
        return document


class BookRecord(CamelModel):
    """Book as stored, returned by the API."""
    id: str
    title: str
    author: str
    isbn: str
    description: Optional[str] = None
    published_year: Optional[int] = None
    genre: str = Genre.OTHER.value
    price: Union[int, float] = 0
    available_copies: int = 1
    language: str = "English"
    publisher: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "BookRecord":
        document = dict(document)
        document["id"] = str(document.pop("_id"))
        return cls.model_validate(document)


class ReviewRecord(CamelModel):
    """Review as stored, returned by the API."""
    id: str
    book_id: str
    reviewer_name: str
    rating: Union[int, float]
    comment: str
    verified: bool = False
    helpful: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ReviewRecord":
        document = dict(document)
        document["id"] = str(document.pop("_id"))
        document["bookId"] = str(document["bookId"])
        return cls.model_validate(document)


class BookQueryParams(BaseModel):
    """Query parameters for book listing."""
    genre: Optional[str] = Field(None, description="Exact genre match")
    author: Optional[str] = Field(None, description="Case-insensitive author substring")
    min_price: Optional[float] = Field(None, description="Minimum price, inclusive")
    max_price: Optional[float] = Field(None, description="Maximum price, inclusive")
    available: bool = Field(False, description="Only books with copies available")


class ReviewQueryParams(BaseModel):
    """Query parameters for review listing."""
    book_id: Optional[str] = Field(None, description="Filter by book identifier")


class BookStats(CamelModel):
    """Aggregate over all books."""
    total_books: int
    total_copies: int
    avg_price: Optional[float] = None
    genres: List[str] = Field(default_factory=list)


class AverageRating(CamelModel):
    """Average rating of one book's reviews."""
    avg_rating: float = 0
    count: int = 0


class APIResponse(BaseModel):
    """Envelope wrapping every response body."""
    success: bool = Field(..., description="Whether the request succeeded")
    message: Optional[str] = Field(None, description="Human readable outcome")
    count: Optional[int] = Field(None, description="Number of items in data")
    data: Optional[Any] = Field(None, description="Response payload")
    errors: Optional[List[str]] = Field(None, description="Validation errors")
    error: Optional[str] = Field(None, description="Raw error text, development only")


class HealthResponse(CamelModel):
    """Health check payload."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
