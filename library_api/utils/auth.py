"""Flask-JWT-Extended callbacks: user reload, logout blocklist, JSON 401s."""
from flask import current_app, jsonify
from flask_jwt_extended import create_access_token

from library_api.repositories.token_repo import TokenRepo
from library_api.repositories.user_repo import UserRepo


def issue_token(user) -> str:
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role.value})


def _unauthorized(message="Unauthenticated."):
    return jsonify({"success": False, "message": message}), 401


def register_jwt_callbacks(jwt):
    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        # re-read on every request so role changes and deletions apply at once
        return UserRepo.get_by_id(int(jwt_data["sub"]))

    @jwt.user_lookup_error_loader
    def user_missing(_jwt_header, jwt_data):
        current_app.logger.info(f"[auth] token for unknown user={jwt_data.get('sub')}")
        return _unauthorized()

    @jwt.token_in_blocklist_loader
    def is_revoked(_jwt_header, jwt_payload):
        return TokenRepo.is_revoked(jwt_payload["jti"])

    @jwt.revoked_token_loader
    def revoked(_jwt_header, _jwt_payload):
        return _unauthorized("Token has been revoked.")

    @jwt.expired_token_loader
    def expired(_jwt_header, _jwt_payload):
        return _unauthorized("Token has expired.")

    @jwt.invalid_token_loader
    def invalid(reason):
        current_app.logger.info(f"[auth] rejected token: {reason}")
        return _unauthorized()

    @jwt.unauthorized_loader
    def missing(_reason):
        return _unauthorized()
