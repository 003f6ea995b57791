"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from api.database import BookService, ReviewService
from api.main import app
from api.routes import get_book_service, get_review_service


def cursor_for(documents):
    """Stand-in for a motor cursor returning the given documents."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=documents)
    return cursor


def make_collection():
    """Stand-in for a motor collection."""
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_replace = AsyncMock(return_value=None)
    collection.find_one_and_delete = AsyncMock(return_value=None)
    collection.create_index = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.find = MagicMock(return_value=cursor_for([]))
    collection.aggregate = MagicMock(return_value=cursor_for([]))
    return collection


@pytest.fixture
def mock_database():
    """Create a mock MongoDB database with books and reviews collections."""
    collections = {"books": make_collection(), "reviews": make_collection()}
    database = MagicMock()
    database.__getitem__.side_effect = collections.__getitem__
    database.books = collections["books"]
    database.reviews = collections["reviews"]
    database.command = AsyncMock(return_value={"ok": 1})
    return database


@pytest.fixture
def book_service(mock_database):
    return BookService(mock_database)


@pytest.fixture
def review_service(mock_database):
    return ReviewService(mock_database)


@pytest.fixture
def sample_book_payload():
    """Create a valid book payload as a client would send it."""
    return {
        "title": "Clean Architecture",
        "author": "Robert C. Martin",
        "isbn": "978-0-13-468599-1",
        "description": "A craftsman's guide to software structure and design.",
        "publishedYear": 2017,
        "genre": "Non-Fiction",
        "price": 29.99,
        "availableCopies": 3,
        "language": "English",
        "publisher": "Prentice Hall",
    }


@pytest.fixture
def sample_review_payload():
    """Create a valid review payload."""
    return {
        "bookId": "652f1b2c9d1e8a0012345678",
        "reviewerName": "Ada",
        "rating": 4,
        "comment": "Clear, practical and well argued.",
        "verified": True,
        "helpful": 2,
    }


@pytest.fixture
def book_document():
    """A book as MongoDB returns it."""
    created = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
    return {
        "_id": ObjectId("652f1b2c9d1e8a0012345678"),
        "title": "Clean Architecture",
        "author": "Robert C. Martin",
        "isbn": "9780134685991",
        "genre": "Non-Fiction",
        "price": 29.99,
        "availableCopies": 3,
        "language": "English",
        "createdAt": created,
        "updatedAt": created,
    }


@pytest.fixture
def review_document():
    """A review as MongoDB returns it."""
    created = datetime(2025, 1, 16, 9, 0, tzinfo=timezone.utc)
    return {
        "_id": ObjectId("652f1b2c9d1e8a0087654321"),
        "bookId": ObjectId("652f1b2c9d1e8a0012345678"),
        "reviewerName": "Ada",
        "rating": 4,
        "comment": "Clear, practical and well argued.",
        "verified": True,
        "helpful": 2,
        "createdAt": created,
        "updatedAt": created,
    }


@pytest.fixture
def mock_book_service():
    return AsyncMock(spec=BookService)


@pytest.fixture
def mock_review_service():
    return AsyncMock(spec=ReviewService)


@pytest.fixture
def client(mock_book_service, mock_review_service):
    """Create a test client with the services replaced by mocks."""
    app.dependency_overrides[get_book_service] = lambda: mock_book_service
    app.dependency_overrides[get_review_service] = lambda: mock_review_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_cursor():
    """Factory for cursors returning canned documents."""
    return cursor_for
