import enum
from datetime import datetime

from library_api.errors import AlreadyClosedError
from library_api.extensions import db
from library_api.utils.clock import utcnow


class BorrowState(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class Borrow(db.Model):
    __tablename__ = "borrows"

    MAX_ACTIVE_BORROWS = 3
    DEFAULT_LOAN_DAYS = 14

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    borrowed_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime, nullable=False)
    # NULL = open, set = closed; never cleared once set
    returned_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User", backref=db.backref("borrows", lazy="dynamic"))
    book = db.relationship("Book", backref=db.backref("borrows", lazy="dynamic"))

    # At most one open borrow per book, enforced by the database as well.
    __table_args__ = (
        db.Index(
            "ux_borrows_open_book",
            book_id,
            unique=True,
            sqlite_where=returned_at.is_(None),
            postgresql_where=returned_at.is_(None),
            mssql_where=returned_at.is_(None),
        ),
    )

    @property
    def state(self) -> BorrowState:
        return BorrowState.OPEN if self.returned_at is None else BorrowState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state is BorrowState.OPEN

    def close(self, at: datetime):
        if not self.is_open:
            raise AlreadyClosedError()
        self.returned_at = at
