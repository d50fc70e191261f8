import itertools
from datetime import datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from library_api import create_app
from library_api.config import TestConfig
from library_api.extensions import db as _db
from library_api.models.book import Book
from library_api.models.borrow import Borrow
from library_api.models.user import Role, User
from library_api.utils.auth import issue_token

NOW = datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def app(tmp_path):
    # one SQLite file per test
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'library_test.db'}"

    app = create_app(_Config)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role=Role.USER, password="password123", **kw):
        n = next(counter)
        user = User(
            name=kw.get("name", f"Reader {n}"),
            email=kw.get("email", f"reader{n}@example.com"),
            password_hash=generate_password_hash(password, method="pbkdf2:sha256:1000"),
            library_id=kw.get("library_id", f"LIB-{1000 + n}"),
            role=role,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture
def make_book(app):
    counter = itertools.count(1)

    def _make(available=True, **kw):
        n = next(counter)
        book = Book(
            title=kw.get("title", f"Book {n}"),
            author=kw.get("author", f"Author {n}"),
            isbn=kw.get("isbn", f"978000000{n:04d}"),
            publication_year=kw.get("publication_year", 2001),
            available=available,
        )
        _db.session.add(book)
        _db.session.commit()
        return book

    return _make


@pytest.fixture
def make_borrow(app):
    """Seed a ledger row directly, keeping the book flag consistent with it."""

    def _make(user, book, borrowed_at=None, due_date=None, returned_at=None):
        borrowed_at = borrowed_at or NOW - timedelta(days=3)
        borrow = Borrow(
            user_id=user.id,
            book_id=book.id,
            borrowed_at=borrowed_at,
            due_date=due_date or borrowed_at + timedelta(days=14),
            returned_at=returned_at,
        )
        book.available = returned_at is not None
        _db.session.add(borrow)
        _db.session.commit()
        return borrow

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(user)}"}

    return _headers


@pytest.fixture
def check_invariant(app):
    """available == False  <=>  an open borrow exists for the book."""

    def _check():
        _db.session.expire_all()
        for book in Book.query.all():
            open_count = Borrow.query.filter(Borrow.book_id == book.id, Borrow.returned_at.is_(None)).count()
            assert open_count <= 1
            assert book.available == (open_count == 0), f"book {book.id} breaks the availability invariant"

    return _check
