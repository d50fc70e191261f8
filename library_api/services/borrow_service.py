from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from library_api.errors import (
    AlreadyClosedError,
    BookUnavailableError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from library_api.models.borrow import Borrow
from library_api.repositories.book_repo import BookRepo
from library_api.repositories.borrow_repo import BorrowRepo
from library_api.repositories.user_repo import UserRepo
from library_api.utils.clock import as_naive_utc, utcnow
from library_api.utils.transaction import atomic


def _is_open_borrow_conflict(error: IntegrityError) -> bool:
    # PostgreSQL and MSSQL name the index, SQLite names the indexed column
    message = str(error.orig)
    return "ux_borrows_open_book" in message or "borrows.book_id" in message


class BorrowService:
    STATUS_FILTERS = ("active", "all")

    @staticmethod
    def borrow_limit() -> int:
        return int(current_app.config.get("MAX_ACTIVE_BORROWS", Borrow.MAX_ACTIVE_BORROWS))

    @staticmethod
    def loan_period() -> timedelta:
        return timedelta(days=int(current_app.config.get("LOAN_PERIOD_DAYS", Borrow.DEFAULT_LOAN_DAYS)))

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        return as_naive_utc(now) if now is not None else utcnow()

    @staticmethod
    def borrow_book(user, book_id: int, now: datetime | None = None) -> Borrow:
        """
        Lend ``book_id`` to ``user``.

        Checks run in this order and the first failure wins: the book exists,
        the book is available, the user is under the open-borrow limit. The
        new borrow row and the availability flip are committed together.
        """
        now = BorrowService._now(now)
        limit = BorrowService.borrow_limit()

        try:
            with atomic("borrow"):
                # taken first: count-then-insert must not interleave for one user
                if not UserRepo.lock(user.id):
                    raise NotFoundError("User not found.")

                book = BookRepo.get_for_update(book_id)
                if not book:
                    raise NotFoundError("Book not found.")

                if not book.available:
                    raise BookUnavailableError()

                if BorrowRepo.count_open_for_user(user.id) >= limit:
                    raise LimitExceededError(limit)

                borrow = BorrowRepo.create(
                    user_id=user.id,
                    book_id=book.id,
                    borrowed_at=now,
                    due_date=now + BorrowService.loan_period(),
                )
                BookRepo.set_availability(book.id, False)
        except IntegrityError as e:
            # a concurrent borrower got the book first
            if _is_open_borrow_conflict(e):
                raise BookUnavailableError() from e
            raise

        current_app.logger.info(
            f"[borrow] user={borrow.user_id} book={borrow.book_id} borrow={borrow.id} due={borrow.due_date}"
        )
        return borrow

    @staticmethod
    def return_book(actor, borrow_id: int, now: datetime | None = None) -> Borrow:
        """
        Close ``borrow_id`` and put its book back on the shelf.

        A closed record is reported as such to everybody, owner or not;
        only then is the actor checked (owner, or a role that may manage any
        borrow).
        """
        now = BorrowService._now(now)

        with atomic("return"):
            borrow = BorrowRepo.get_for_update(borrow_id)
            if not borrow:
                raise NotFoundError("Borrow record not found.")

            if not borrow.is_open:
                raise AlreadyClosedError()

            if borrow.user_id != actor.id and not actor.role.can_manage_borrows:
                raise ForbiddenError("You are not authorized to return this book.")

            BorrowRepo.set_returned(borrow, now)
            BookRepo.set_availability(borrow.book_id, True)

        current_app.logger.info(f"[return] borrow={borrow.id} book={borrow.book_id} by={actor.id}")
        return borrow

    @staticmethod
    def _check_status(status: str | None, default: str) -> str:
        status = (status or default).strip().lower()
        if status not in BorrowService.STATUS_FILTERS:
            raise ValidationError({"status": ["The selected status is invalid."]})
        return status

    @staticmethod
    def list_borrows(status: str | None = None):
        return BorrowRepo.list_all(BorrowService._check_status(status, "all"))

    @staticmethod
    def list_user_borrows(user, status: str | None = None):
        return BorrowRepo.list_by_user(user.id, BorrowService._check_status(status, "active"))
