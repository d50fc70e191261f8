from datetime import datetime

from sqlalchemy.orm import joinedload

from library_api.models.borrow import Borrow
from library_api.extensions import db


class BorrowRepo:
    @staticmethod
    def get(borrow_id: int):
        return db.session.get(Borrow, borrow_id)

    @staticmethod
    def get_for_update(borrow_id: int):
        return db.session.get(Borrow, borrow_id, with_for_update=True, populate_existing=True)

    @staticmethod
    def count_open_for_user(user_id: int) -> int:
        return Borrow.query.filter(Borrow.user_id == user_id, Borrow.returned_at.is_(None)).count()

    @staticmethod
    def create(user_id: int, book_id: int, borrowed_at: datetime, due_date: datetime) -> Borrow:
        borrow = Borrow(
            user_id=user_id,
            book_id=book_id,
            borrowed_at=borrowed_at,
            due_date=due_date,
            returned_at=None,
        )
        db.session.add(borrow)
        db.session.flush()
        return borrow

    @staticmethod
    def set_returned(borrow: Borrow, returned_at: datetime) -> Borrow:
        borrow.close(returned_at)
        db.session.flush()
        return borrow

    @staticmethod
    def _ordered(query, status: str):
        if status == "active":
            query = query.filter(Borrow.returned_at.is_(None))
        return query.order_by(Borrow.borrowed_at.desc(), Borrow.id.desc())

    @staticmethod
    def list_all(status: str = "all"):
        query = Borrow.query.options(joinedload(Borrow.book), joinedload(Borrow.user))
        return BorrowRepo._ordered(query, status).all()

    @staticmethod
    def list_by_user(user_id: int, status: str = "active"):
        query = Borrow.query.options(joinedload(Borrow.book)).filter(Borrow.user_id == user_id)
        return BorrowRepo._ordered(query, status).all()

    @staticmethod
    def exists_for_book(book_id: int) -> bool:
        return db.session.query(Borrow.query.filter(Borrow.book_id == book_id).exists()).scalar()

    @staticmethod
    def exists_for_user(user_id: int) -> bool:
        return db.session.query(Borrow.query.filter(Borrow.user_id == user_id).exists()).scalar()
