from sqlalchemy import update

from library_api.models.user import User
from library_api.extensions import db


class UserRepo:
    @staticmethod
    def get_by_email(email: str):
        return User.query.filter(User.email == email).first()

    @staticmethod
    def get_by_id(user_id: int):
        return db.session.get(User, user_id)

    @staticmethod
    def lock(user_id: int) -> bool:
        """
        Take the write lock on the user row; False if there is no such user.

        A no-op UPDATE rather than SELECT ... FOR UPDATE: SQLite ignores FOR
        UPDATE and only locks the database at the first write of a
        transaction, so the write has to come before the reads it guards.
        """
        result = db.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(library_id=User.library_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def email_taken(email: str, exclude_id: int | None = None) -> bool:
        query = User.query.filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    @staticmethod
    def library_id_taken(library_id: str, exclude_id: int | None = None) -> bool:
        query = User.query.filter(User.library_id == library_id)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    @staticmethod
    def list_query():
        return User.query.order_by(User.id.asc())

    @staticmethod
    def add(user: User):
        db.session.add(user)
        db.session.flush()
        return user

    @staticmethod
    def delete(user: User):
        db.session.delete(user)
        db.session.flush()
