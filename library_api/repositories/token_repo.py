from library_api.models.token_blocklist import TokenBlocklist
from library_api.extensions import db


class TokenRepo:
    @staticmethod
    def is_revoked(jti: str) -> bool:
        return TokenBlocklist.query.filter_by(jti=jti).first() is not None

    @staticmethod
    def revoke(jti: str, user_id: int | None = None):
        entry = TokenBlocklist(jti=jti, user_id=user_id)
        db.session.add(entry)
        db.session.flush()
        return entry
