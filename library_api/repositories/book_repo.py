from sqlalchemy import or_

from library_api.models.book import Book
from library_api.extensions import db


class BookRepo:
    @staticmethod
    def search(term: str | None = None):
        query = Book.query
        if term:
            like = f"%{term}%"
            query = query.filter(or_(Book.title.ilike(like), Book.author.ilike(like), Book.isbn.ilike(like)))
        return query.order_by(Book.title.asc(), Book.id.asc())

    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def get_for_update(book_id: int):
        # row lock + fresh column values, even if the Book is already in the session
        return db.session.get(Book, book_id, with_for_update=True, populate_existing=True)

    @staticmethod
    def isbn_taken(isbn: str, exclude_id: int | None = None) -> bool:
        query = Book.query.filter(Book.isbn == isbn)
        if exclude_id is not None:
            query = query.filter(Book.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    @staticmethod
    def set_availability(book_id: int, available: bool):
        book = db.session.get(Book, book_id)
        book.available = available
        db.session.flush()
        return book

    @staticmethod
    def add(book: Book):
        db.session.add(book)
        db.session.flush()
        return book

    @staticmethod
    def delete(book: Book):
        db.session.delete(book)
        db.session.flush()
