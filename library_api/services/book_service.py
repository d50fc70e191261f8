from flask import current_app

from library_api.errors import NotFoundError, ResourceInUseError
from library_api.models.book import Book
from library_api.repositories.book_repo import BookRepo
from library_api.repositories.borrow_repo import BorrowRepo
from library_api.utils.transaction import atomic
from library_api.utils.validators import Payload

AVAILABLE_READ_ONLY = "The available flag is managed by borrowing and returning."


class BookService:
    @staticmethod
    def list_books(search: str | None = None, page: int = 1):
        per_page = current_app.config.get("BOOKS_PER_PAGE", 10)
        return BookRepo.search(search).paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def get_book(book_id: int):
        book = BookRepo.get(book_id)
        if not book:
            raise NotFoundError("Book not found.")
        return book

    @staticmethod
    def _validate(data: dict, required: bool, book_id: int | None = None) -> dict:
        payload = (
            Payload(data, required=required)
            .string("title")
            .string("author")
            .string("isbn", max_len=32)
            .publication_year()
            .reject("available", AVAILABLE_READ_ONLY)
        )
        isbn = payload.clean.get("isbn")
        if isbn and BookRepo.isbn_taken(isbn, exclude_id=book_id):
            payload.add_error("isbn", "The isbn has already been taken.")
        return payload.validated()

    @staticmethod
    def create_book(data: dict):
        clean = BookService._validate(data, required=True)
        with atomic("books"):
            book = BookRepo.add(Book(available=True, **clean))
        current_app.logger.info(f"[books] created book={book.id} isbn={book.isbn}")
        return book

    @staticmethod
    def update_book(book_id: int, data: dict):
        book = BookService.get_book(book_id)
        clean = BookService._validate(data, required=False, book_id=book.id)
        with atomic("books"):
            for k, v in clean.items():
                setattr(book, k, v)
        current_app.logger.info(f"[books] updated book={book.id} fields={sorted(clean)}")
        return book

    @staticmethod
    def delete_book(book_id: int):
        book = BookService.get_book(book_id)
        if BorrowRepo.exists_for_book(book.id):
            raise ResourceInUseError("Unable to delete a book with borrow history.")
        with atomic("books"):
            BookRepo.delete(book)
        current_app.logger.info(f"[books] deleted book={book_id}")
