from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from library_api.models.user import Role
from library_api.services.book_service import BookService
from library_api.utils.decorators import role_required
from library_api.utils.pagination import page_arg, paginated

book_bp = Blueprint("books", __name__)


@book_bp.get("/books")
def list_books():
    page = BookService.list_books(request.args.get("search"), page_arg())
    return jsonify(paginated(page, [b.to_dict() for b in page.items]))


@book_bp.get("/books/<int:book_id>")
def get_book(book_id: int):
    return jsonify({"success": True, "data": BookService.get_book(book_id).to_dict()})


@book_bp.post("/books")
@jwt_required()
@role_required(Role.ADMIN)
def create_book():
    b = BookService.create_book(request.get_json(silent=True) or {})
    return jsonify({"success": True, "message": "Book created successfully", "data": b.to_dict()}), 201


@book_bp.route("/books/<int:book_id>", methods=["PUT", "PATCH"])
@jwt_required()
@role_required(Role.ADMIN)
def update_book(book_id: int):
    b = BookService.update_book(book_id, request.get_json(silent=True) or {})
    return jsonify({"success": True, "message": "Book updated successfully", "data": b.to_dict()})


@book_bp.delete("/books/<int:book_id>")
@jwt_required()
@role_required(Role.ADMIN)
def delete_book(book_id: int):
    BookService.delete_book(book_id)
    return "", 204
