"""
Tests for the FastAPI application.
"""

import json

import pytest
from fastapi.testclient import TestClient

from api.config import config
from api.database import BookService
from api.errors import DuplicateKey, InternalError, InvalidIdentifier, NotFound, ValidationFailed
from api.main import app
from api.models import AverageRating, BookQueryParams, BookRecord, BookStats, ReviewQueryParams, ReviewRecord

BOOK_ID = "652f1b2c9d1e8a0012345678"
REVIEW_ID = "652f1b2c9d1e8a0087654321"


@pytest.fixture
def book_record(book_document):
    return BookRecord.from_document(book_document)


@pytest.fixture
def review_record(review_document):
    return ReviewRecord.from_document(review_document)


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["version"] == config.api_version
    assert "GET /books/stats/summary" in data["endpoints"]["books"]
    assert "GET /reviews/book/{bookId}/average" in data["endpoints"]["reviews"]


def test_health_without_database(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["data"]["status"] == "degraded"
    assert body["data"]["databaseStatus"] == "unavailable"


def test_unknown_route(client):
    response = client.get("/nothing/here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route not found"}


def test_unsupported_method_reads_as_unknown_route(client):
    response = client.patch(f"/books/{BOOK_ID}", json={})

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route not found"}


class TestBookEndpoints:
    """Test cases for /books."""

    def test_create_book(self, client, mock_book_service, sample_book_payload, book_record):
        mock_book_service.create_book.return_value = book_record

        response = client.post("/books", json=sample_book_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Book created successfully"
        assert body["data"]["id"] == BOOK_ID
        assert body["data"]["availableCopies"] == 3
        assert body["data"]["createdAt"].startswith("2025-01-15T10:30:00")
        assert "description" not in body["data"]
        mock_book_service.create_book.assert_awaited_once_with(sample_book_payload)

    def test_create_book_validation_errors(self, client, mock_book_service):
        mock_book_service.create_book.side_effect = ValidationFailed(
            ["Book title is required", "ISBN is required"]
        )

        response = client.post("/books", json={"author": "Anon"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "errors": ["Book title is required", "ISBN is required"],
        }

    def test_create_book_duplicate_isbn(self, client, mock_book_service, sample_book_payload):
        mock_book_service.create_book.side_effect = DuplicateKey("A book with this ISBN already exists")

        response = client.post("/books", json=sample_book_payload)

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "A book with this ISBN already exists"}

    def test_create_book_with_non_object_body(self, client, mock_book_service):
        response = client.post("/books", json=["not", "a", "book"])

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"]
        mock_book_service.create_book.assert_not_awaited()

    def test_list_books(self, client, mock_book_service, book_record):
        mock_book_service.get_books.return_value = [book_record]

        response = client.get("/books")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 1
        assert body["data"][0]["title"] == "Clean Architecture"
        mock_book_service.get_books.assert_awaited_once_with(BookQueryParams())

    def test_list_books_with_filters(self, client, mock_book_service):
        mock_book_service.get_books.return_value = []

        response = client.get(
            "/books?genre=Mystery&author=christie&minPrice=10&maxPrice=20&available=true"
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 0, "data": []}
        mock_book_service.get_books.assert_awaited_once_with(BookQueryParams(
            genre="Mystery",
            author="christie",
            min_price=10,
            max_price=20,
            available=True,
        ))

    @pytest.mark.parametrize("value", ["false", "1", "TRUE", "yes"])
    def test_only_literal_true_filters_availability(self, client, mock_book_service, value):
        mock_book_service.get_books.return_value = []

        client.get(f"/books?available={value}")

        query_params = mock_book_service.get_books.call_args.args[0]
        assert query_params.available is False

    def test_list_books_with_non_numeric_price(self, client, mock_book_service):
        response = client.get("/books?minPrice=cheap")

        assert response.status_code == 400
        assert response.json()["errors"][0].startswith("minPrice")
        mock_book_service.get_books.assert_not_awaited()

    def test_empty_price_bound_is_ignored(self, client, mock_book_service):
        mock_book_service.get_books.return_value = []

        response = client.get("/books?minPrice=&maxPrice=20")

        assert response.status_code == 200
        mock_book_service.get_books.assert_awaited_once_with(BookQueryParams(max_price=20))

    def test_infinite_price_bound_rejected(self, client, mock_book_service):
        response = client.get("/books?maxPrice=inf")

        assert response.status_code == 400
        assert response.json()["errors"] == ["maxPrice: Input should be a valid number"]
        mock_book_service.get_books.assert_not_awaited()

    def test_create_book_with_infinity_in_body(self, mock_database, sample_book_payload):
        from api.routes import get_book_service

        body = json.dumps(sample_book_payload)[:-1] + ', "price": Infinity}'
        app.dependency_overrides[get_book_service] = lambda: BookService(mock_database)
        try:
            response = TestClient(app).post(
                "/books", content=body, headers={"Content-Type": "application/json"}
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 400
        assert response.json() == {"success": False, "errors": ["Price must be a finite number"]}
        mock_database["books"].insert_one.assert_not_awaited()

    def test_stats_summary_route_is_not_an_id(self, client, mock_book_service):
        mock_book_service.get_stats_summary.return_value = BookStats(
            total_books=3, total_copies=6, avg_price=20.0, genres=["Fiction", "Mystery"]
        )

        response = client.get("/books/stats/summary")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "totalBooks": 3,
            "totalCopies": 6,
            "avgPrice": 20.0,
            "genres": ["Fiction", "Mystery"],
        }
        mock_book_service.get_book_by_id.assert_not_awaited()

    def test_stats_summary_when_empty(self, client, mock_book_service):
        mock_book_service.get_stats_summary.return_value = None

        response = client.get("/books/stats/summary")

        assert response.json() == {"success": True, "data": {}}

    def test_get_book(self, client, mock_book_service, book_record):
        mock_book_service.get_book_by_id.return_value = book_record

        response = client.get(f"/books/{BOOK_ID}")

        assert response.status_code == 200
        assert response.json()["data"]["isbn"] == "9780134685991"
        mock_book_service.get_book_by_id.assert_awaited_once_with(BOOK_ID)

    def test_get_book_not_found(self, client, mock_book_service):
        mock_book_service.get_book_by_id.side_effect = NotFound("Book not found")

        response = client.get(f"/books/{BOOK_ID}")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Book not found"}

    def test_get_book_malformed_id(self, client, mock_book_service):
        mock_book_service.get_book_by_id.side_effect = InvalidIdentifier("Invalid ID format: 'abc'")

        response = client.get("/books/abc")

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_update_book(self, client, mock_book_service, sample_book_payload, book_record):
        mock_book_service.update_book.return_value = book_record

        response = client.put(f"/books/{BOOK_ID}", json=sample_book_payload)

        assert response.status_code == 200
        assert response.json()["message"] == "Book updated successfully"
        mock_book_service.update_book.assert_awaited_once_with(BOOK_ID, sample_book_payload)

    def test_update_missing_book(self, client, mock_book_service, sample_book_payload):
        mock_book_service.update_book.side_effect = NotFound("Book not found")

        response = client.put(f"/books/{BOOK_ID}", json=sample_book_payload)

        assert response.status_code == 404

    def test_delete_book(self, client, mock_book_service, book_record):
        mock_book_service.delete_book.return_value = book_record

        response = client.delete(f"/books/{BOOK_ID}")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Book deleted successfully"
        assert body["data"]["id"] == BOOK_ID


class TestReviewEndpoints:
    """Test cases for /reviews."""

    def test_create_review(self, client, mock_review_service, sample_review_payload, review_record):
        mock_review_service.create_review.return_value = review_record

        response = client.post("/reviews", json=sample_review_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Review created successfully"
        assert body["data"]["bookId"] == BOOK_ID
        assert body["data"]["reviewerName"] == "Ada"

    def test_list_reviews_for_book(self, client, mock_review_service, review_record):
        mock_review_service.get_reviews.return_value = [review_record]

        response = client.get(f"/reviews?bookId={BOOK_ID}")

        assert response.status_code == 200
        assert response.json()["count"] == 1
        mock_review_service.get_reviews.assert_awaited_once_with(ReviewQueryParams(book_id=BOOK_ID))

    def test_get_review(self, client, mock_review_service, review_record):
        mock_review_service.get_review_by_id.return_value = review_record

        response = client.get(f"/reviews/{REVIEW_ID}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == REVIEW_ID

    def test_update_review_validation_errors(self, client, mock_review_service, sample_review_payload):
        mock_review_service.update_review.side_effect = ValidationFailed(["Rating must be between 1 and 5"])

        response = client.put(f"/reviews/{REVIEW_ID}", json=sample_review_payload)

        assert response.status_code == 400
        assert response.json()["errors"] == ["Rating must be between 1 and 5"]

    def test_delete_review(self, client, mock_review_service, review_record):
        mock_review_service.delete_review.return_value = review_record

        response = client.delete(f"/reviews/{REVIEW_ID}")

        assert response.status_code == 200
        assert response.json()["message"] == "Review deleted successfully"

    def test_average_rating(self, client, mock_review_service):
        mock_review_service.get_average_rating.return_value = AverageRating(avg_rating=4, count=3)

        response = client.get(f"/reviews/book/{BOOK_ID}/average")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"avgRating": 4.0, "count": 3}}
        mock_review_service.get_average_rating.assert_awaited_once_with(BOOK_ID)


class TestErrorHandling:
    """Test cases for failures that reach the HTTP boundary."""

    def test_internal_error_hides_detail(self, client, mock_book_service):
        mock_book_service.get_books.side_effect = InternalError("connection refused")

        response = client.get("/books")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Server error"}

    def test_internal_error_detail_in_debug(self, client, mock_book_service, monkeypatch):
        monkeypatch.setattr(config, "debug", True)
        mock_book_service.get_books.side_effect = InternalError("connection refused")

        response = client.get("/books")

        assert response.status_code == 500
        assert response.json()["error"] == "connection refused"

    def test_unexpected_exception(self, mock_book_service):
        from api.routes import get_book_service

        mock_book_service.get_books.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_book_service] = lambda: mock_book_service
        try:
            response = TestClient(app, raise_server_exceptions=False).get("/books")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Something went wrong!"}

    def test_service_unavailable_without_database(self):
        response = TestClient(app).get(f"/books/{BOOK_ID}")

        assert response.status_code == 500
        assert response.json()["success"] is False
