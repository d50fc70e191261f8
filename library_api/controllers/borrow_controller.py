from flask import Blueprint, request, jsonify
from flask_jwt_extended import get_current_user, jwt_required

from library_api.models.user import Role
from library_api.services.borrow_service import BorrowService
from library_api.services.borrow_status import project_borrow, project_borrows
from library_api.utils.decorators import role_required
from library_api.utils.validators import Payload

borrow_bp = Blueprint("borrowings", __name__)


@borrow_bp.post("/borrowings")
@jwt_required()
def borrow_book():
    # identity comes from the token only; a user_id in the body is ignored
    book_id = Payload(request.get_json(silent=True)).integer("book_id", min_value=1).validated()["book_id"]
    borrow = BorrowService.borrow_book(get_current_user(), book_id)
    return jsonify({"success": True, "data": project_borrow(borrow)}), 201


@borrow_bp.get("/borrowings")
@jwt_required()
@role_required(Role.ADMIN)
def all_borrows():
    borrows = BorrowService.list_borrows(request.args.get("status"))
    return jsonify({"success": True, "data": project_borrows(borrows, include_user=True)})


@borrow_bp.get("/me/borrowings")
@jwt_required()
def my_borrows():
    borrows = BorrowService.list_user_borrows(get_current_user(), request.args.get("status"))
    return jsonify({"success": True, "data": project_borrows(borrows)})


@borrow_bp.post("/borrowings/<int:borrow_id>/return")
@jwt_required()
def return_book(borrow_id: int):
    borrow = BorrowService.return_book(get_current_user(), borrow_id)
    return jsonify({"success": True, "data": project_borrow(borrow, include_user=True)})
