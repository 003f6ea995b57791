"""
Book and review endpoints.

Every endpoint answers with the ``APIResponse`` envelope. Service errors are
left to the exception handlers registered in ``api.main``.
"""

import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from api.database import BookService, ReviewService
from api.errors import InternalError, ValidationFailed
from api.models import APIResponse, BookQueryParams, ReviewQueryParams

books_router = APIRouter(prefix="/books", tags=["Books"])
reviews_router = APIRouter(prefix="/reviews", tags=["Reviews"])


def respond(status_code: int = status.HTTP_200_OK, **fields: Any) -> JSONResponse:
    """Render an envelope, leaving out keys that are not set."""
    fields.setdefault("success", True)
    envelope = APIResponse(**fields)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope, by_alias=True, exclude_none=True),
    )


def parse_price(name: str, value: Optional[str]) -> Optional[float]:
    """Read a price bound from the query string; an empty value means no bound."""
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except ValueError:
        price = math.nan
    if not math.isfinite(price):
        raise ValidationFailed([f"{name}: Input should be a valid number"])
    return price


def get_book_service(request: Request) -> BookService:
    service = getattr(request.app.state, "book_service", None)
    if service is None:
        raise InternalError("Database service not available")
    return service


def get_review_service(request: Request) -> ReviewService:
    service = getattr(request.app.state, "review_service", None)
    if service is None:
        raise InternalError("Database service not available")
    return service


# Books endpoints
@books_router.post("", status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: Dict[str, Any] = Body(...),
    service: BookService = Depends(get_book_service),
):
    """Create a new book."""
    book = await service.create_book(payload)
    return respond(status.HTTP_201_CREATED, message="Book created successfully", data=book)


@books_router.get("")
async def get_books(
    genre: Optional[str] = None,
    author: Optional[str] = None,
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    available: Optional[str] = None,
    service: BookService = Depends(get_book_service),
):
    """
    Get all books, newest first.

    - **genre**: Exact genre match
    - **author**: Case-insensitive author substring
    - **minPrice** / **maxPrice**: Inclusive price range
    - **available**: `true` to list only books with copies available
    """
    query_params = BookQueryParams(
        genre=genre,
        author=author,
        min_price=parse_price("minPrice", min_price),
        max_price=parse_price("maxPrice", max_price),
        available=available == "true",
    )
    books = await service.get_books(query_params)
    return respond(count=len(books), data=books)


@books_router.get("/stats/summary")
async def get_book_stats(service: BookService = Depends(get_book_service)):
    """Totals, average price and genres across all books."""
    stats = await service.get_stats_summary()
    return respond(data=stats if stats is not None else {})


@books_router.get("/{book_id}")
async def get_book(book_id: str, service: BookService = Depends(get_book_service)):
    book = await service.get_book_by_id(book_id)
    return respond(data=book)


@books_router.put("/{book_id}")
async def update_book(
    book_id: str,
    payload: Dict[str, Any] = Body(...),
    service: BookService = Depends(get_book_service),
):
    """Replace a book. Omitted optional fields revert to their defaults."""
    book = await service.update_book(book_id, payload)
    return respond(message="Book updated successfully", data=book)


@books_router.delete("/{book_id}")
async def delete_book(book_id: str, service: BookService = Depends(get_book_service)):
    book = await service.delete_book(book_id)
    return respond(message="Book deleted successfully", data=book)


# Reviews endpoints
@reviews_router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(
    payload: Dict[str, Any] = Body(...),
    service: ReviewService = Depends(get_review_service),
):
    """Create a new review."""
    review = await service.create_review(payload)
    return respond(status.HTTP_201_CREATED, message="Review created successfully", data=review)


@reviews_router.get("")
async def get_reviews(
    book_id: Optional[str] = Query(None, alias="bookId"),
    service: ReviewService = Depends(get_review_service),
):
    """Get all reviews, optionally for one book, newest first."""
    reviews = await service.get_reviews(ReviewQueryParams(book_id=book_id))
    return respond(count=len(reviews), data=reviews)


@reviews_router.get("/book/{book_id}/average")
async def get_average_rating(book_id: str, service: ReviewService = Depends(get_review_service)):
    """Average rating and review count for a book."""
    average = await service.get_average_rating(book_id)
    return respond(data=average)


@reviews_router.get("/{review_id}")
async def get_review(review_id: str, service: ReviewService = Depends(get_review_service)):
    review = await service.get_review_by_id(review_id)
    return respond(data=review)


@reviews_router.put("/{review_id}")
async def update_review(
    review_id: str,
    payload: Dict[str, Any] = Body(...),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.update_review(review_id, payload)
    return respond(message="Review updated successfully", data=review)


@reviews_router.delete("/{review_id}")
async def delete_review(review_id: str, service: ReviewService = Depends(get_review_service)):
    review = await service.delete_review(review_id)
    return respond(message="Review deleted successfully", data=review)
