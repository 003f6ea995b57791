"""
Payload validation for books and reviews.

Each entity has a ``validate_*`` function returning the list of violated
field constraints as human readable messages, and a ``check_*`` function
that also returns the parsed model when the payload is valid.
"""

from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from api.models import BookPayload, Genre, ReviewPayload

ModelT = TypeVar("ModelT", bound=BaseModel)

BOOK_MESSAGES: Dict[Tuple[str, str], str] = {
    ("title", "missing"): "Book title is required",
    ("title", "string_too_short"): "Title must be at least 1 character long",
    ("title", "string_too_long"): "Title cannot exceed 200 characters",
    ("author", "missing"): "Author name is required",
    ("author", "string_too_short"): "Author name must be at least 1 character long",
    ("isbn", "missing"): "ISBN is required",
    ("description", "string_too_long"): "Description cannot exceed 1000 characters",
    ("publishedYear", "greater_than_equal"): "Published year must be after 1000",
    ("genre", "enum"): "Genre must be one of: " + ", ".join(g.value for g in Genre),
    ("price", "greater_than_equal"): "Price cannot be negative",
    ("price", "finite_number"): "Price must be a finite number",
    ("availableCopies", "greater_than_equal"): "Available copies cannot be negative",
}

REVIEW_MESSAGES: Dict[Tuple[str, str], str] = {
    ("bookId", "missing"): "Book ID is required",
    ("reviewerName", "missing"): "Reviewer name is required",
    ("reviewerName", "string_too_short"): "Reviewer name must be at least 2 characters long",
    ("rating", "missing"): "Rating is required",
    ("rating", "greater_than_equal"): "Rating must be between 1 and 5",
    ("rating", "less_than_equal"): "Rating must be between 1 and 5",
    ("rating", "finite_number"): "Rating must be between 1 and 5",
    ("comment", "missing"): "Review comment is required",
    ("comment", "string_too_short"): "Comment must be at least 10 characters long",
    ("comment", "string_too_long"): "Comment cannot exceed 500 characters",
    ("helpful", "greater_than_equal"): "Helpful count cannot be negative",
}


def describe_error(error: Dict[str, Any], messages: Dict[Tuple[str, str], str]) -> str:
    """Turn one pydantic error into a message."""
    field = ".".join(str(part) for part in error["loc"]) or "payload"
    error_type = error["type"]

    # null counts as a missing value
    if error.get("input") is None and error_type.endswith("_type"):
        error_type = "missing" if (field, "missing") in messages else error_type

    if (field, error_type) in messages:
        return messages[(field, error_type)]
    if error_type == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return f"{field}: {error['msg']}"


def collect_violations(
    model: Type[ModelT],
    payload: Any,
    messages: Dict[Tuple[str, str], str],
) -> Tuple[Optional[ModelT], List[str]]:
    """Validate a payload against a model, gathering every violation."""
    try:
        return model.model_validate(payload), []
    except ValidationError as e:
        return None, [describe_error(error, messages) for error in e.errors()]


def check_book(payload: Any) -> Tuple[Optional[BookPayload], List[str]]:
    return collect_violations(BookPayload, payload, BOOK_MESSAGES)


def check_review(payload: Any) -> Tuple[Optional[ReviewPayload], List[str]]:
    return collect_violations(ReviewPayload, payload, REVIEW_MESSAGES)


def validate_book(payload: Any) -> List[str]:
    """Return the constraints a book payload violates, empty when valid."""
    return check_book(payload)[1]


def validate_review(payload: Any) -> List[str]:
    """Return the constraints a review payload violates, empty when valid."""
    return check_review(payload)[1]
