"""
Read-time projection of borrow records.

Nothing here touches the database or the clock on its own: callers pass
``now`` (or let it default to the current UTC time) and get the same answer
for the same record and the same ``now``.
"""
import math
from datetime import datetime

from library_api.utils.clock import as_naive_utc, isoformat, utcnow

STATUS_ACTIVE = "active"
STATUS_OVERDUE = "overdue"
STATUS_RETURNED = "returned"

_SECONDS_PER_DAY = 86400


def _check(borrow):
    if getattr(borrow, "borrowed_at", None) is None or getattr(borrow, "due_date", None) is None:
        raise ValueError("malformed borrow record: borrowed_at and due_date are required")


def is_overdue(borrow, now: datetime | None = None) -> bool:
    _check(borrow)
    now = as_naive_utc(now) if now is not None else utcnow()
    return borrow.returned_at is None and now > as_naive_utc(borrow.due_date)


def borrow_status(borrow, now: datetime | None = None) -> str:
    if borrow.returned_at is not None:
        return STATUS_RETURNED
    return STATUS_OVERDUE if is_overdue(borrow, now) else STATUS_ACTIVE


def days_overdue(borrow, now: datetime | None = None) -> int:
    """Whole days past due, rounded up; 0 for anything not overdue."""
    now = as_naive_utc(now) if now is not None else utcnow()
    if not is_overdue(borrow, now):
        return 0
    late = now - as_naive_utc(borrow.due_date)
    return math.ceil(late.total_seconds() / _SECONDS_PER_DAY)


def _book_dict(book):
    if book is None:
        return None
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "isbn": book.isbn,
        "publication_year": book.publication_year,
        "available": bool(book.available),
    }


def _user_dict(user):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "library_id": user.library_id,
        "role": user.role.value if user.role else None,
    }


def project_borrow(borrow, now: datetime | None = None, include_user: bool = False) -> dict:
    _check(borrow)
    now = as_naive_utc(now) if now is not None else utcnow()
    overdue = is_overdue(borrow, now)

    data = {
        "id": borrow.id,
        "borrowed_at": isoformat(borrow.borrowed_at),
        "due_date": isoformat(borrow.due_date),
        "returned_at": isoformat(borrow.returned_at),
        "status": borrow_status(borrow, now),
        "is_overdue": overdue,
        "days_overdue": days_overdue(borrow, now),
        "book": _book_dict(getattr(borrow, "book", None)),
    }
    user = getattr(borrow, "user", None) if include_user else None
    if user is not None:
        data["user"] = _user_dict(user)
    return data


def project_borrows(borrows, now: datetime | None = None, include_user: bool = False) -> list[dict]:
    # one "now" for the whole batch so rows are consistent with each other
    now = as_naive_utc(now) if now is not None else utcnow()
    return [project_borrow(b, now, include_user=include_user) for b in borrows]
