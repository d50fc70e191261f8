import random

from flask import current_app
from werkzeug.security import generate_password_hash, check_password_hash

from library_api.errors import AuthenticationError
from library_api.models.user import Role, User
from library_api.repositories.token_repo import TokenRepo
from library_api.repositories.user_repo import UserRepo
from library_api.utils.auth import issue_token
from library_api.utils.transaction import atomic
from library_api.utils.validators import Payload

LIBRARY_ID_ATTEMPTS = 100


class AuthService:
    @staticmethod
    def generate_library_id() -> str:
        """Random ``LIB-####`` not yet used by any user."""
        for _ in range(LIBRARY_ID_ATTEMPTS):
            library_id = f"LIB-{random.randint(1000, 9999):04d}"
            if not UserRepo.library_id_taken(library_id):
                return library_id

        # the 4-digit space is (nearly) exhausted, widen it
        while True:
            library_id = f"LIB-{random.randint(10000, 999999):06d}"
            if not UserRepo.library_id_taken(library_id):
                return library_id

    @staticmethod
    def register(data: dict):
        payload = Payload(data).string("name").email().string("password", min_len=8)
        clean = payload.validated()
        if UserRepo.email_taken(clean["email"]):
            payload.add_error("email", "The email has already been taken.").validated()

        with atomic("auth"):
            user = UserRepo.add(User(
                name=clean["name"],
                email=clean["email"],
                password_hash=generate_password_hash(clean["password"]),
                library_id=AuthService.generate_library_id(),
                role=Role.USER,  # self-registration never grants Admin
            ))

        current_app.logger.info(f"[auth] registered user={user.id} library_id={user.library_id}")
        return user, issue_token(user)

    @staticmethod
    def login(data: dict):
        clean = Payload(data).email().string("password").validated()
        user = UserRepo.get_by_email(clean["email"])
        if not user or not check_password_hash(user.password_hash, clean["password"]):
            current_app.logger.info(f"[auth] failed login for {clean['email']}")
            raise AuthenticationError()

        return user, issue_token(user)

    @staticmethod
    def logout(user, jti: str):
        with atomic("auth"):
            TokenRepo.revoke(jti, user.id)
        current_app.logger.info(f"[auth] logout user={user.id}")
