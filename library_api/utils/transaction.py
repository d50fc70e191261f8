from contextlib import contextmanager

from flask import current_app

from library_api.errors import LibraryError
from library_api.extensions import db


@contextmanager
def atomic(tag: str = "tx"):
    """
    One unit of work on the request session.

    Everything done inside the block is committed together when the block
    exits normally. Any exception (business rule or database) rolls the whole
    block back and is re-raised, so callers never see half-applied state.
    Repositories used inside must not commit on their own.
    """
    try:
        yield db.session
        db.session.commit()
    except LibraryError as e:
        db.session.rollback()
        current_app.logger.info(f"[{tag}] rejected: {e.message}")
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning(f"[{tag}] rolled back: {e.__class__.__name__}: {e}")
        raise
