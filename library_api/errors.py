"""
Business-rule failures raised by the services.

Every error carries a stable, human readable message and the HTTP status the
API maps it to. None of them is transient; retrying the same call gives the
same answer until the underlying state changes.
"""
from flask import jsonify


class LibraryError(Exception):
    status_code = 400
    message = "Request could not be processed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class NotFoundError(LibraryError):
    status_code = 404
    message = "Resource not found."


class ConflictError(LibraryError):
    status_code = 422
    message = "The request conflicts with the current state."


class BookUnavailableError(ConflictError):
    message = "This book is currently unavailable."


class LimitExceededError(ConflictError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(
            "Borrowing limit reached. Return a book before borrowing a new one "
            f"(limit: {limit})."
        )


class AlreadyClosedError(ConflictError):
    status_code = 409
    message = "This borrow record is already closed."


class ResourceInUseError(ConflictError):
    status_code = 409
    message = "The resource is still referenced by borrow records."


class ForbiddenError(LibraryError):
    status_code = 403
    message = "You are not authorized to perform this action."


class AuthenticationError(LibraryError):
    status_code = 401
    message = "Invalid credentials"


class ValidationError(LibraryError):
    status_code = 422
    message = "The given data was invalid."

    def __init__(self, errors: dict, message: str | None = None):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


def register_error_handlers(app):
    @app.errorhandler(LibraryError)
    def _library_error(e: LibraryError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def _not_found(_e):
        return jsonify({"success": False, "message": "Not found"}), 404

    @app.errorhandler(405)
    def _method_not_allowed(_e):
        return jsonify({"success": False, "message": "Method not allowed"}), 405

    @app.errorhandler(500)
    def _server_error(_e):
        return jsonify({"success": False, "message": "Server error"}), 500
