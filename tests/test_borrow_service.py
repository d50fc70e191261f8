import sqlite3
import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from library_api.errors import (
    AlreadyClosedError,
    BookUnavailableError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from library_api.models.book import Book
from library_api.models.borrow import Borrow, BorrowState
from library_api.models.user import Role, User
from library_api.repositories.book_repo import BookRepo
from library_api.repositories.borrow_repo import BorrowRepo
from library_api.services.borrow_service import BorrowService
from library_api.services.borrow_status import project_borrow

from conftest import NOW


def test_borrow_success_creates_open_record_and_marks_book(db, make_user, make_book, check_invariant):
    user = make_user()
    book = make_book(available=True)

    borrow = BorrowService.borrow_book(user, book.id, now=NOW)

    assert borrow.state is BorrowState.OPEN
    assert borrow.user_id == user.id
    assert borrow.book.id == book.id
    assert borrow.borrowed_at == NOW
    assert borrow.due_date - borrow.borrowed_at == timedelta(days=14)
    assert db.session.get(Book, book.id).available is False
    assert project_borrow(borrow, now=NOW)["status"] == "active"
    check_invariant()


def test_borrow_unknown_book_is_not_found(make_user):
    with pytest.raises(NotFoundError):
        BorrowService.borrow_book(make_user(), 999, now=NOW)


def test_borrow_unavailable_book_is_conflict(make_user, make_book, make_borrow):
    owner, other = make_user(), make_user()
    book = make_book()
    make_borrow(owner, book)

    with pytest.raises(BookUnavailableError) as exc:
        BorrowService.borrow_book(other, book.id, now=NOW)

    assert exc.value.message == "This book is currently unavailable."
    assert exc.value.status_code == 422


def test_unavailable_wins_over_limit(make_user, make_book, make_borrow):
    user, other = make_user(), make_user()
    for _ in range(3):
        make_borrow(user, make_book())
    taken = make_book()
    make_borrow(other, taken)

    with pytest.raises(BookUnavailableError):
        BorrowService.borrow_book(user, taken.id, now=NOW)


def test_limit_reached_is_rejected_with_limit_in_message(db, make_user, make_book, make_borrow, check_invariant):
    user = make_user()
    for _ in range(3):
        make_borrow(user, make_book())
    extra = make_book()

    with pytest.raises(LimitExceededError) as exc:
        BorrowService.borrow_book(user, extra.id, now=NOW)

    assert "limit: 3" in exc.value.message
    assert exc.value.message == (
        "Borrowing limit reached. Return a book before borrowing a new one (limit: 3)."
    )
    assert db.session.get(Book, extra.id).available is True
    assert Borrow.query.filter_by(book_id=extra.id).count() == 0
    check_invariant()


def test_one_below_limit_still_succeeds(make_user, make_book, make_borrow):
    user = make_user()
    for _ in range(2):
        make_borrow(user, make_book())

    borrow = BorrowService.borrow_book(user, make_book().id, now=NOW)
    assert borrow.is_open
    assert len(BorrowService.list_user_borrows(user)) == 3


def test_returned_borrows_do_not_count_toward_limit(make_user, make_book, make_borrow):
    user = make_user()
    for _ in range(3):
        make_borrow(user, make_book(), returned_at=NOW - timedelta(days=1))

    assert BorrowService.borrow_book(user, make_book().id, now=NOW).is_open


def test_limit_comes_from_config(app, make_user, make_book, make_borrow):
    app.config["MAX_ACTIVE_BORROWS"] = 1
    user = make_user()
    make_borrow(user, make_book())

    with pytest.raises(LimitExceededError) as exc:
        BorrowService.borrow_book(user, make_book().id, now=NOW)
    assert "limit: 1" in exc.value.message


def test_owner_can_return(db, make_user, make_book, check_invariant):
    user = make_user()
    book = make_book()
    borrow = BorrowService.borrow_book(user, book.id, now=NOW)

    returned = BorrowService.return_book(user, borrow.id, now=NOW + timedelta(days=2))

    assert returned.returned_at == NOW + timedelta(days=2)
    assert returned.state is BorrowState.CLOSED
    assert returned.book.available is True
    assert returned.user.id == user.id
    assert project_borrow(returned, now=NOW + timedelta(days=40))["status"] == "returned"
    check_invariant()


def test_return_unknown_borrow_is_not_found(make_user):
    with pytest.raises(NotFoundError):
        BorrowService.return_book(make_user(), 12345, now=NOW)


def test_non_owner_cannot_return(db, make_user, make_book):
    owner, stranger = make_user(), make_user()
    book = make_book()
    borrow = BorrowService.borrow_book(owner, book.id, now=NOW)

    with pytest.raises(ForbiddenError):
        BorrowService.return_book(stranger, borrow.id, now=NOW)

    assert db.session.get(Borrow, borrow.id).returned_at is None
    assert db.session.get(Book, book.id).available is False


def test_admin_can_return_someone_elses_borrow(make_user, make_book, check_invariant):
    owner = make_user()
    admin = make_user(role=Role.ADMIN)
    borrow = BorrowService.borrow_book(owner, make_book().id, now=NOW)

    assert BorrowService.return_book(admin, borrow.id, now=NOW).returned_at == NOW
    check_invariant()


def test_second_return_is_already_closed(db, make_user, make_book, check_invariant):
    user = make_user()
    book = make_book()
    borrow = BorrowService.borrow_book(user, book.id, now=NOW)
    BorrowService.return_book(user, borrow.id, now=NOW + timedelta(days=1))

    with pytest.raises(AlreadyClosedError) as exc:
        BorrowService.return_book(user, borrow.id, now=NOW + timedelta(days=2))

    assert exc.value.status_code == 409
    assert "already closed" in exc.value.message
    assert db.session.get(Borrow, borrow.id).returned_at == NOW + timedelta(days=1)
    assert db.session.get(Book, book.id).available is True
    check_invariant()


def test_already_closed_is_reported_before_forbidden(make_user, make_book):
    owner, stranger = make_user(), make_user()
    borrow = BorrowService.borrow_book(owner, make_book().id, now=NOW)
    BorrowService.return_book(owner, borrow.id, now=NOW)

    with pytest.raises(AlreadyClosedError):
        BorrowService.return_book(stranger, borrow.id, now=NOW)


def test_stale_return_does_not_free_a_book_lent_again(db, make_user, make_book, check_invariant):
    first, second = make_user(), make_user()
    book = make_book()
    old = BorrowService.borrow_book(first, book.id, now=NOW)
    BorrowService.return_book(first, old.id, now=NOW + timedelta(days=1))
    BorrowService.borrow_book(second, book.id, now=NOW + timedelta(days=2))

    with pytest.raises(AlreadyClosedError):
        BorrowService.return_book(first, old.id, now=NOW + timedelta(days=3))

    assert db.session.get(Book, book.id).available is False
    check_invariant()


def test_failed_availability_write_rolls_back_borrow(db, monkeypatch, make_user, make_book, check_invariant):
    user = make_user()
    book = make_book()

    def boom(book_id, available):
        raise RuntimeError("disk full")

    monkeypatch.setattr(BookRepo, "set_availability", staticmethod(boom))

    with pytest.raises(RuntimeError):
        BorrowService.borrow_book(user, book.id, now=NOW)

    monkeypatch.undo()
    assert Borrow.query.count() == 0
    assert db.session.get(Book, book.id).available is True
    check_invariant()


def test_failed_availability_write_rolls_back_return(db, monkeypatch, make_user, make_book, check_invariant):
    user = make_user()
    book = make_book()
    borrow = BorrowService.borrow_book(user, book.id, now=NOW)

    def boom(book_id, available):
        raise RuntimeError("connection lost")

    monkeypatch.setattr(BookRepo, "set_availability", staticmethod(boom))

    with pytest.raises(RuntimeError):
        BorrowService.return_book(user, borrow.id, now=NOW)

    monkeypatch.undo()
    assert db.session.get(Borrow, borrow.id).returned_at is None
    assert db.session.get(Book, book.id).available is False
    check_invariant()


def test_open_borrow_index_turns_lost_race_into_conflict(db, make_user, make_book, make_borrow):
    # Simulates a racer that read available=True before the winner committed.
    winner, loser = make_user(), make_user()
    book = make_book()
    make_borrow(winner, book)
    book.available = True
    db.session.commit()

    with pytest.raises(BookUnavailableError):
        BorrowService.borrow_book(loser, book.id, now=NOW)

    assert Borrow.query.filter_by(book_id=book.id, returned_at=None).count() == 1


def test_borrow_return_sequence_keeps_invariant(make_user, make_book, check_invariant):
    users = [make_user() for _ in range(2)]
    books = [make_book() for _ in range(4)]

    a = BorrowService.borrow_book(users[0], books[0].id, now=NOW)
    b = BorrowService.borrow_book(users[0], books[1].id, now=NOW)
    check_invariant()
    BorrowService.return_book(users[0], a.id, now=NOW)
    c = BorrowService.borrow_book(users[1], books[0].id, now=NOW)
    check_invariant()
    BorrowService.return_book(users[1], c.id, now=NOW)
    BorrowService.return_book(users[0], b.id, now=NOW)
    check_invariant()


def test_list_user_borrows_filters_and_orders(make_user, make_book, make_borrow):
    user, other = make_user(), make_user()
    oldest = make_borrow(user, make_book(), borrowed_at=NOW - timedelta(days=10), returned_at=NOW - timedelta(days=5))
    middle = make_borrow(user, make_book(), borrowed_at=NOW - timedelta(days=4))
    newest = make_borrow(user, make_book(), borrowed_at=NOW - timedelta(days=1))
    make_borrow(other, make_book())

    assert [b.id for b in BorrowService.list_user_borrows(user)] == [newest.id, middle.id]
    assert [b.id for b in BorrowService.list_user_borrows(user, "all")] == [newest.id, middle.id, oldest.id]


def test_list_borrows_defaults_to_all(make_user, make_book, make_borrow):
    user = make_user()
    make_borrow(user, make_book(), returned_at=NOW)
    make_borrow(user, make_book())

    assert len(BorrowService.list_borrows()) == 2
    assert len(BorrowService.list_borrows("active")) == 1


def test_list_rejects_unknown_status(make_user):
    with pytest.raises(ValidationError):
        BorrowService.list_user_borrows(make_user(), "lost")


def test_other_integrity_errors_are_not_reported_as_unavailable(db, monkeypatch, make_user, make_book,
                                                                check_invariant):
    user = make_user()
    book = make_book()

    def fk_failure(**kwargs):
        raise IntegrityError("INSERT INTO borrows", {}, sqlite3.IntegrityError("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(BorrowRepo, "create", staticmethod(fk_failure))

    with pytest.raises(IntegrityError):
        BorrowService.borrow_book(user, book.id, now=NOW)

    monkeypatch.undo()
    assert Borrow.query.count() == 0
    check_invariant()


def test_borrow_for_missing_user_is_not_found(make_book):
    with pytest.raises(NotFoundError, match="User not found"):
        BorrowService.borrow_book(User(id=999), make_book().id, now=NOW)


def test_concurrent_borrows_cannot_pass_the_limit(app, db, monkeypatch, make_user, make_book, make_borrow):
    user = make_user()
    for _ in range(2):
        make_borrow(user, make_book())
    user_id = user.id
    book_ids = [make_book().id, make_book().id]

    # Both borrowers wait here after counting. One kept out by the user lock
    # never arrives, so the other goes on once the barrier times out.
    both_counted = threading.Barrier(2, timeout=1)
    count_open = BorrowRepo.count_open_for_user

    def count_then_wait(uid):
        n = count_open(uid)
        try:
            both_counted.wait()
        except threading.BrokenBarrierError:
            pass
        return n

    monkeypatch.setattr(BorrowRepo, "count_open_for_user", staticmethod(count_then_wait))

    outcomes = []

    def borrow(book_id):
        with app.app_context():
            try:
                BorrowService.borrow_book(db.session.get(User, user_id), book_id, now=NOW)
                outcomes.append("borrowed")
            except LimitExceededError:
                outcomes.append("limit")
            except Exception as e:
                outcomes.append(e)

    threads = [threading.Thread(target=borrow, args=(book_id,)) for book_id in book_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    monkeypatch.undo()
    db.session.expire_all()
    assert outcomes.count("borrowed") == 1, outcomes
    assert outcomes.count("limit") == 1, outcomes
    assert BorrowRepo.count_open_for_user(user_id) == 3
