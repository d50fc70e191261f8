from flask import Blueprint, request, jsonify

from library_api.models.user import Role
from library_api.services.user_service import UserService
from library_api.utils.decorators import role_required
from library_api.utils.pagination import page_arg, paginated

user_bp = Blueprint("users", __name__)


@user_bp.before_request
@role_required(Role.ADMIN)
def _admins_only():
    return None


@user_bp.get("/users")
def list_users():
    page = UserService.list_users(page_arg())
    return jsonify(paginated(page, [u.to_dict() for u in page.items]))


@user_bp.get("/users/<int:user_id>")
def get_user(user_id: int):
    return jsonify({"success": True, "data": UserService.get_user(user_id).to_dict()})


@user_bp.post("/users")
def create_user():
    u = UserService.create_user(request.get_json(silent=True) or {})
    return jsonify({"success": True, "message": "User created successfully", "data": u.to_dict()}), 201


@user_bp.route("/users/<int:user_id>", methods=["PUT", "PATCH"])
def update_user(user_id: int):
    u = UserService.update_user(user_id, request.get_json(silent=True) or {})
    return jsonify({"success": True, "message": "User updated successfully", "data": u.to_dict()})


@user_bp.delete("/users/<int:user_id>")
def delete_user(user_id: int):
    UserService.delete_user(user_id)
    return "", 204
