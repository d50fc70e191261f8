from flask import Blueprint, request, jsonify
from flask_jwt_extended import get_current_user, get_jwt, jwt_required

from library_api.services.auth_service import AuthService

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/register")
def register():
    user, token = AuthService.register(request.get_json(silent=True) or {})
    return jsonify({"success": True, "user": user.to_dict(), "token": token}), 201


@auth_bp.post("/login")
def login():
    user, token = AuthService.login(request.get_json(silent=True) or {})
    return jsonify({"success": True, "user": user.to_dict(), "token": token})


@auth_bp.post("/logout")
@jwt_required()
def logout():
    AuthService.logout(get_current_user(), get_jwt()["jti"])
    return jsonify({"success": True, "message": "Logged out"})


@auth_bp.get("/me")
@jwt_required()
def me():
    return jsonify({"success": True, "user": get_current_user().to_dict()})
