from flask import current_app
from werkzeug.security import generate_password_hash

from library_api.errors import NotFoundError, ResourceInUseError
from library_api.models.user import Role, User
from library_api.repositories.borrow_repo import BorrowRepo
from library_api.repositories.user_repo import UserRepo
from library_api.services.auth_service import AuthService
from library_api.utils.transaction import atomic
from library_api.utils.validators import Payload

ROLE_VALUES = [r.value for r in Role]


class UserService:
    @staticmethod
    def list_users(page: int = 1):
        per_page = current_app.config.get("USERS_PER_PAGE", 10)
        return UserRepo.list_query().paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def get_user(user_id: int):
        user = UserRepo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found.")
        return user

    @staticmethod
    def _validate(data: dict, required: bool, user_id: int | None = None) -> dict:
        payload = Payload(data, required=required).string("name").email()
        if (data or {}).get("role") is not None:
            payload.choice("role", ROLE_VALUES)
        if required or "password" in (data or {}):
            payload.string("password", min_len=8)
        if (data or {}).get("library_id") is not None:
            payload.string("library_id", max_len=32)

        clean = payload.clean
        if clean.get("email") and UserRepo.email_taken(clean["email"], exclude_id=user_id):
            payload.add_error("email", "The email has already been taken.")
        if clean.get("library_id") and UserRepo.library_id_taken(clean["library_id"], exclude_id=user_id):
            payload.add_error("library_id", "The library id has already been taken.")
        return payload.validated()

    @staticmethod
    def _apply(user: User, clean: dict):
        for k in ["name", "email", "library_id"]:
            if k in clean:
                setattr(user, k, clean[k])
        if "role" in clean:
            user.role = Role(clean["role"])
        if "password" in clean:
            user.password_hash = generate_password_hash(clean["password"])

    @staticmethod
    def create_user(data: dict):
        clean = UserService._validate(data, required=True)
        with atomic("users"):
            user = User(role=Role.USER)
            UserService._apply(user, clean)
            if not user.library_id:
                user.library_id = AuthService.generate_library_id()
            UserRepo.add(user)
        current_app.logger.info(f"[users] created user={user.id} role={user.role.value}")
        return user

    @staticmethod
    def update_user(user_id: int, data: dict):
        user = UserService.get_user(user_id)
        clean = UserService._validate(data, required=False, user_id=user.id)
        with atomic("users"):
            UserService._apply(user, clean)
        current_app.logger.info(f"[users] updated user={user.id} fields={sorted(clean)}")
        return user

    @staticmethod
    def delete_user(user_id: int):
        user = UserService.get_user(user_id)
        if BorrowRepo.exists_for_user(user.id):
            raise ResourceInUseError("Unable to delete a user with borrow history.")
        with atomic("users"):
            UserRepo.delete(user)
        current_app.logger.info(f"[users] deleted user={user_id}")
